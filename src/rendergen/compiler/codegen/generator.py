"""Main code generator orchestrator."""

import ast
import logging
from typing import List, Tuple

from rendergen.compiler.codegen.binder import ExpressionBinder
from rendergen.compiler.codegen.context import CompilationContext
from rendergen.compiler.codegen.primitives import (
    API_PARAM,
    CONTEXT_PARAM,
    SLOT_SET_PARAM,
    PrimitiveEmitter,
)
from rendergen.compiler.codegen.scope import (
    INSTANCE,
    collect_descendant_usage,
    destructure,
    dump_scope,
    resolve_references,
)
from rendergen.compiler.codegen.template import TemplateCodegen
from rendergen.compiler.ir import IRElement
from rendergen.config import CompilerConfig

log = logging.getLogger(__name__)

RENDER_FN = "tmpl"
FACTORY_FN = "create_template"
MODULES_PARAM = "modules"
TEMPLATE_EXPORT = "template"


def _arguments(names: List[str]) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=n) for n in names],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


def _call(func: ast.expr, *args: ast.expr) -> ast.Call:
    return ast.Call(func=func, args=list(args), keywords=[])


def _name(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Load())


class CodeGenerator:
    """Generates the render function module from a template IR root."""

    def __init__(self, config: CompilerConfig) -> None:
        self.config = config

    def generate(self, root: IRElement) -> ast.Module:
        """Generate complete module AST."""
        # Fresh state for every compilation
        self.context = CompilationContext(self.config)
        self.emitter = PrimitiveEmitter(self.context)
        binder = ExpressionBinder(self.context)
        codegen = TemplateCodegen(self.context, self.emitter, binder)

        root_expr = codegen.transform(root)
        render_fn = self._generate_render_function(root_expr)

        if self.config.format == "function":
            module = ast.Module(body=[self._generate_factory(render_fn)], type_ignores=[])
        else:
            module = ast.Module(body=self._generate_module_body(render_fn), type_ignores=[])

        ast.fix_missing_locations(module)
        return module

    @property
    def dependencies(self) -> List[str]:
        """Component references of the last generated template, in first-use order."""
        return list(self.emitter.dependencies)

    def _generate_render_function(self, root_expr: ast.expr) -> ast.FunctionDef:
        body: List[ast.stmt] = []

        used = list(self.emitter.used_apis.values())
        if used:
            body.append(
                destructure(
                    [p.alias for p in used],
                    [
                        ast.Attribute(value=_name(API_PARAM), attr=p.name, ctx=ast.Load())
                        for p in used
                    ],
                )
            )

        root_scope = self.context.root_scope
        collect_descendant_usage(root_scope)
        body.extend(dump_scope(root_scope))

        for slot_name, slot_id in self.emitter.used_slots.items():
            body.append(
                ast.Assign(
                    targets=[ast.Name(id=slot_id, ctx=ast.Store())],
                    value=_call(
                        ast.Attribute(value=_name(SLOT_SET_PARAM), attr="get", ctx=ast.Load()),
                        ast.Constant(value=slot_name),
                    ),
                )
            )

        for memo_id in self.emitter.memoized_ids:
            body.append(
                ast.Assign(
                    targets=[ast.Name(id=memo_id, ctx=ast.Store())],
                    value=_call(
                        ast.Attribute(value=_name(CONTEXT_PARAM), attr="get", ctx=ast.Load()),
                        ast.Constant(value=memo_id),
                    ),
                )
            )

        body.append(ast.Return(value=root_expr))

        render_fn = ast.FunctionDef(
            name=RENDER_FN,
            args=_arguments([API_PARAM, INSTANCE, SLOT_SET_PARAM, CONTEXT_PARAM]),
            body=body,
            decorator_list=[],
            returns=None,
        )

        count = resolve_references(render_fn)
        log.debug(
            "Resolved %d property reads across %d scopes",
            count,
            len(self.context.scopes()),
        )
        return render_fn

    def _stylesheets_assignment(self) -> ast.Assign:
        return ast.Assign(
            targets=[ast.Attribute(value=_name(RENDER_FN), attr="stylesheets", ctx=ast.Store())],
            value=ast.List(elts=[], ctx=ast.Load()),
        )

    def _namespace_import(self) -> List[ast.stmt]:
        if not self.emitter.uses_namespace:
            return []
        return [
            ast.ImportFrom(
                module="types",
                names=[ast.alias(name="SimpleNamespace", asname=None)],
                level=0,
            )
        ]

    def _generate_module_body(self, render_fn: ast.FunctionDef) -> List[ast.stmt]:
        body: List[ast.stmt] = self._namespace_import()

        runtime_names = ["register_template"] + self.emitter.runtime_helpers
        body.append(
            ast.ImportFrom(
                module=self.config.runtime_module,
                names=[ast.alias(name=n, asname=None) for n in runtime_names],
                level=0,
            )
        )

        for component, identifier in self.emitter.dependencies.items():
            module_name, attr = _split_component(component)
            body.append(
                ast.ImportFrom(
                    module=module_name,
                    names=[ast.alias(name=attr, asname=identifier)],
                    level=0,
                )
            )

        body.append(render_fn)
        body.append(self._stylesheets_assignment())
        # template = register_template(tmpl)
        body.append(
            ast.Assign(
                targets=[ast.Name(id=TEMPLATE_EXPORT, ctx=ast.Store())],
                value=_call(_name("register_template"), _name(RENDER_FN)),
            )
        )
        return body

    def _generate_factory(self, render_fn: ast.FunctionDef) -> ast.FunctionDef:
        """``def create_template(modules)``: lookups, the render function, ``return tmpl``."""
        body: List[ast.stmt] = self._namespace_import()

        lookups = [(identifier, component) for component, identifier in self.emitter.dependencies.items()]
        lookups.extend(
            (helper, f"{self.config.runtime_module}:{helper}")
            for helper in self.emitter.runtime_helpers
        )
        for identifier, key in lookups:
            body.append(
                ast.Assign(
                    targets=[ast.Name(id=identifier, ctx=ast.Store())],
                    value=ast.Subscript(
                        value=_name(MODULES_PARAM),
                        slice=ast.Constant(value=key),
                        ctx=ast.Load(),
                    ),
                )
            )

        body.append(render_fn)
        body.append(self._stylesheets_assignment())
        body.append(ast.Return(value=_name(RENDER_FN)))

        return ast.FunctionDef(
            name=FACTORY_FN,
            args=_arguments([MODULES_PARAM]),
            body=body,
            decorator_list=[],
            returns=None,
        )


def _split_component(component: str) -> Tuple[str, str]:
    module_name, _, attr = component.partition(":")
    return module_name, attr
