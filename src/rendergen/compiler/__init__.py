"""Template compiler entry point."""

import ast
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Union

from rendergen.compiler.codegen.generator import CodeGenerator
from rendergen.compiler.exceptions import (
    CodegenError,
    InvalidTemplateError,
    TemplateCompileError,
)
from rendergen.compiler.ir import IRElement
from rendergen.compiler.validation import validate_template
from rendergen.config import CompilerConfig

log = logging.getLogger(__name__)


@dataclass
class CompiledTemplate:
    """Result of one compilation."""

    code: str
    module: ast.Module
    config: CompilerConfig
    # 'module:attr' component references, in first-use order
    dependencies: List[str] = field(default_factory=list)
    stylesheets: List[str] = field(default_factory=list)


def compile_template(
    root: IRElement,
    config: Union[CompilerConfig, Mapping[str, Any], None] = None,
) -> CompiledTemplate:
    """Compile a template IR root into a render function module.

    Raises ``TemplateCompileError`` on invalid input; no partial output is
    returned.
    """
    if not isinstance(config, CompilerConfig):
        config = CompilerConfig.from_mapping(config)

    validate_template(root, filename=config.name)

    generator = CodeGenerator(config)
    module = generator.generate(root)
    code = ast.unparse(module)

    log.debug(
        "Compiled %s (%s format): %d lines, %d dependencies",
        config.name,
        config.format,
        code.count("\n") + 1,
        len(generator.dependencies),
    )
    return CompiledTemplate(
        code=code,
        module=module,
        config=config,
        dependencies=generator.dependencies,
    )


__all__ = [
    "CodegenError",
    "CompiledTemplate",
    "InvalidTemplateError",
    "TemplateCompileError",
    "compile_template",
]
