"""Template loader - executes compiled templates into render functions."""

import hashlib
import importlib
import logging
import sys
from typing import Any, Callable, Dict, Mapping, Optional

from rendergen.compiler import CompiledTemplate
from rendergen.compiler.codegen.generator import FACTORY_FN

log = logging.getLogger(__name__)

RenderFunction = Callable[..., Any]


def import_reference(reference: str) -> Any:
    """Import ``'package.module:attr'``."""
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid reference '{reference}', expected 'module:attr'")

    module = importlib.import_module(module_name)
    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part)
    return target


class ModuleRegistry(dict):
    """``modules`` mapping handed to ``create_template``; imports missing entries on lookup."""

    def __missing__(self, reference: str) -> Any:
        value = import_reference(reference)
        self[reference] = value
        return value


class TemplateLoader:
    """Loads function-format compiled templates, caching by generated code."""

    def __init__(self) -> None:
        self._cache: Dict[str, RenderFunction] = {}

    def load(
        self,
        compiled: CompiledTemplate,
        modules: Optional[Mapping[str, Any]] = None,
        use_cache: bool = True,
    ) -> RenderFunction:
        if compiled.config.format != "function":
            raise ValueError(
                f"Only 'function' format templates can be loaded, got '{compiled.config.format}'"
            )

        cache_key = hashlib.sha256(compiled.code.encode("utf-8")).hexdigest()
        if use_cache and modules is None and cache_key in self._cache:
            return self._cache[cache_key]

        code = compile(compiled.module, f"<template {compiled.config.name}>", "exec")
        module = type(sys)("rendergen_template")
        exec(code, module.__dict__)

        factory = getattr(module, FACTORY_FN)
        render = factory(ModuleRegistry(modules or {}))
        log.debug("Loaded template %s", compiled.config.name)

        if modules is None:
            self._cache[cache_key] = render
        return render

    def clear(self) -> None:
        self._cache.clear()


_default_loader = TemplateLoader()


def load_template(
    compiled: CompiledTemplate, modules: Optional[Mapping[str, Any]] = None
) -> RenderFunction:
    """Return the render function of a function-format compiled template.

    ``modules`` maps ``'module:attr'`` references to objects; references it does
    not provide are imported.
    """
    return _default_loader.load(compiled, modules)
