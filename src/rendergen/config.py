"""Compiler configuration."""

import importlib.util
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "rendergen.config.py"

OUTPUT_FORMATS = ("module", "function")


class ConfigError(ValueError):
    """Invalid compiler configuration."""


@dataclass(frozen=True)
class CompilerConfig:
    """Options for one template compilation.

    format: ``"module"`` emits an importable module, ``"function"`` emits a
        ``create_template(modules)`` factory meant to be executed directly.
    scope_fragment_ids: rewrite same-document ``#fragment`` URLs through the
        scoped fragment id primitive.
    runtime_module: module providing ``register_template`` and
        ``sanitize_attribute`` to generated code.
    name: label for log records and error locations.
    """

    format: str = "module"
    scope_fragment_ids: bool = True
    runtime_module: str = "engine"
    name: str = "template"

    def __post_init__(self) -> None:
        if self.format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"Unknown output format '{self.format}', expected one of: {', '.join(OUTPUT_FORMATS)}"
            )
        if not self.runtime_module:
            raise ConfigError("runtime_module must not be empty")

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "CompilerConfig":
        """Build a config from user options, rejecting unknown keys."""
        if not options:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigError(f"Unknown compiler option(s): {', '.join(unknown)}")
        return cls(**dict(options))


def load_config(path: Union[Path, str, None] = None) -> CompilerConfig:
    """
    Load configuration from a python file.

    If path is provided, loads from there.
    Otherwise, looks for rendergen.config.py in the current working directory.

    Upper-case module variables map to options (FORMAT -> format).
    """
    if path is None:
        path = Path.cwd() / DEFAULT_CONFIG_FILENAME
    else:
        path = Path(path)

    if not path.exists():
        return CompilerConfig()

    spec = importlib.util.spec_from_file_location("rendergen_config", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot load config file {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    options: Dict[str, Any] = {}
    for key in dir(module):
        if key.isupper():
            options[key.lower()] = getattr(module, key)

    log.debug("Loaded config from %s: %s", path, options)
    return CompilerConfig.from_mapping(options)
