from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("rendergen")
except PackageNotFoundError:
    __version__ = "unknown"

from rendergen.compiler import CompiledTemplate, compile_template
from rendergen.compiler.exceptions import (
    CodegenError,
    InvalidTemplateError,
    TemplateCompileError,
)
from rendergen.config import CompilerConfig, ConfigError, load_config
from rendergen.loader import load_template

__all__ = [
    "CodegenError",
    "CompiledTemplate",
    "CompilerConfig",
    "ConfigError",
    "InvalidTemplateError",
    "TemplateCompileError",
    "compile_template",
    "load_config",
    "load_template",
]
