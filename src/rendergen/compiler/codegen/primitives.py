"""Render primitive call emission."""

import ast
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from rendergen.compiler.codegen.context import CompilationContext

API_PARAM = "api"
SLOT_SET_PARAM = "slot_set"
CONTEXT_PARAM = "context"


@dataclass(frozen=True)
class RenderPrimitive:
    name: str  # attribute on the api object
    alias: str  # local name in the render function


RENDER_APIS: Dict[str, RenderPrimitive] = {
    "iterator": RenderPrimitive("i", "api_iterator"),
    "flatten": RenderPrimitive("f", "api_flatten"),
    "element": RenderPrimitive("h", "api_element"),
    "slot": RenderPrimitive("s", "api_slot"),
    "custom_element": RenderPrimitive("c", "api_custom_element"),
    "dynamic_ctor": RenderPrimitive("dc", "api_dynamic_component"),
    "bind": RenderPrimitive("b", "api_bind"),
    "text": RenderPrimitive("t", "api_text"),
    "dynamic": RenderPrimitive("d", "api_dynamic"),
    "key": RenderPrimitive("k", "api_key"),
    "tabindex": RenderPrimitive("ti", "api_tab_index"),
    "scoped_id": RenderPrimitive("gid", "api_scoped_id"),
    "scoped_frag_id": RenderPrimitive("fid", "api_scoped_frag_id"),
    "comment": RenderPrimitive("co", "api_comment"),
}

# Primitives whose result is a list of nodes rather than a single node
LIST_VALUED_ALIASES = frozenset(
    {RENDER_APIS["iterator"].alias, RENDER_APIS["flatten"].alias, RENDER_APIS["slot"].alias}
)


def identifier_from_component_name(component: str) -> str:
    """'ui.greeting:Greeting' -> '_ui_greeting_Greeting'."""
    return "_" + re.sub(r"\W", "_", component)


class PrimitiveEmitter:
    """Emits render primitive calls and remembers which ones were used."""

    def __init__(self, context: CompilationContext) -> None:
        self.context = context
        # alias -> primitive, in first-use order
        self.used_apis: Dict[str, RenderPrimitive] = {}
        # slot name -> local identifier, in first-use order
        self.used_slots: Dict[str, str] = {}
        self.memoized_ids: List[str] = []
        # 'module:attr' -> local identifier
        self.dependencies: Dict[str, str] = {}
        self.runtime_helpers: List[str] = []
        self.uses_namespace = False

    def generate_key(self) -> int:
        return self.context.next_key()

    def gen_element(self, tag: str, data: ast.expr, children: ast.expr) -> ast.Call:
        return self._render_api_call("element", [ast.Constant(value=tag), data, children])

    def gen_custom_element(
        self, tag: str, component: str, data: ast.expr, children: ast.expr
    ) -> ast.Call:
        ctor = ast.Name(id=self.component_identifier(component), ctx=ast.Load())
        return self._render_api_call(
            "custom_element", [ast.Constant(value=tag), ctor, data, children]
        )

    def gen_dynamic_element(
        self, tag: str, ctor: ast.expr, data: ast.expr, children: ast.expr
    ) -> ast.Call:
        return self._render_api_call(
            "dynamic_ctor", [ast.Constant(value=tag), ctor, data, children]
        )

    def gen_text(self, value: Union[str, ast.expr]) -> ast.Call:
        if isinstance(value, str):
            return self._render_api_call("text", [ast.Constant(value=value)])
        return self._render_api_call("dynamic", [value])

    def gen_comment(self, value: str) -> ast.Call:
        return self._render_api_call("comment", [ast.Constant(value=value)])

    def gen_iterator(self, iterable: ast.expr, callback: ast.expr) -> ast.Call:
        return self._render_api_call("iterator", [iterable, callback])

    def gen_flatten(self, children: List[ast.expr]) -> ast.Call:
        return self._render_api_call("flatten", [ast.List(elts=children, ctx=ast.Load())])

    def gen_bind(self, handler: ast.expr) -> ast.Call:
        return self._render_api_call("bind", [handler])

    def gen_key(self, compiler_key: int, value: ast.expr) -> ast.Call:
        return self._render_api_call("key", [ast.Constant(value=compiler_key), value])

    def gen_tab_index(self, value: ast.expr) -> ast.Call:
        return self._render_api_call("tabindex", [value])

    def gen_scoped_id(self, value: Union[str, ast.expr]) -> ast.Call:
        if isinstance(value, str):
            value = ast.Constant(value=value)
        return self._render_api_call("scoped_id", [value])

    def gen_scoped_frag_id(self, value: Union[str, ast.expr]) -> ast.Call:
        if isinstance(value, str):
            value = ast.Constant(value=value)
        return self._render_api_call("scoped_frag_id", [value])

    def gen_slot(self, slot_name: str, data: ast.expr, children: ast.expr) -> ast.Call:
        slot_id = self.used_slots.get(slot_name)
        if slot_id is None:
            slot_id = self.used_slots[slot_name] = f"_slot{len(self.used_slots)}"
        return self._render_api_call(
            "slot",
            [ast.Constant(value=slot_name), data, children, ast.Name(id=slot_id, ctx=ast.Load())],
        )

    def gen_boolean_attribute_expr(self, bound: ast.expr) -> ast.IfExp:
        """'' when truthy, None when falsy, so the runtime adds or removes the attribute."""
        return ast.IfExp(test=bound, body=ast.Constant(value=""), orelse=ast.Constant(value=None))

    def gen_sanitize_attribute(
        self, tag: str, namespace: str, name: str, value: ast.expr
    ) -> ast.Call:
        return ast.Call(
            func=ast.Name(id=self.runtime_helper("sanitize_attribute"), ctx=ast.Load()),
            args=[
                ast.Constant(value=tag),
                ast.Constant(value=namespace),
                ast.Constant(value=name),
                value,
            ],
            keywords=[],
        )

    def memoization_id(self) -> str:
        memo_id = f"_m{len(self.memoized_ids)}"
        self.memoized_ids.append(memo_id)
        return memo_id

    def gen_memoized_handler(self, handler: ast.expr) -> ast.expr:
        """``_m0 or context.setdefault('_m0', api_bind(handler))``."""
        memo_id = self.memoization_id()
        return ast.BoolOp(
            op=ast.Or(),
            values=[
                ast.Name(id=memo_id, ctx=ast.Load()),
                ast.Call(
                    func=ast.Attribute(
                        value=ast.Name(id=CONTEXT_PARAM, ctx=ast.Load()),
                        attr="setdefault",
                        ctx=ast.Load(),
                    ),
                    args=[ast.Constant(value=memo_id), self.gen_bind(handler)],
                    keywords=[],
                ),
            ],
        )

    def component_identifier(self, component: str) -> str:
        identifier = self.dependencies.get(component)
        if identifier is None:
            identifier = self.dependencies[component] = identifier_from_component_name(component)
        return identifier

    def runtime_helper(self, name: str) -> str:
        if name not in self.runtime_helpers:
            self.runtime_helpers.append(name)
        return name

    def is_list_valued(self, expr: Optional[ast.expr]) -> bool:
        if isinstance(expr, ast.List):
            return True
        return (
            isinstance(expr, ast.Call)
            and isinstance(expr.func, ast.Name)
            and expr.func.id in LIST_VALUED_ALIASES
        )

    def _render_api_call(self, primitive: str, params: List[ast.expr]) -> ast.Call:
        definition = RENDER_APIS[primitive]
        self.used_apis.setdefault(definition.alias, definition)
        return ast.Call(
            func=ast.Name(id=definition.alias, ctx=ast.Load()), args=params, keywords=[]
        )
