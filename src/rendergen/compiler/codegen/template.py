"""Template walk: turns IR nodes into render primitive calls."""

import ast
import logging
from typing import AbstractSet, FrozenSet, List, Optional, Sequence, Tuple

from rendergen.compiler.attributes import (
    is_allowed_frag_only_url,
    is_boolean_attribute,
    is_fragment_only_url,
    is_id_referencing_attribute,
    is_svg_use_href,
)
from rendergen.compiler.codegen.binder import ExpressionBinder
from rendergen.compiler.codegen.context import CompilationContext
from rendergen.compiler.codegen.primitives import PrimitiveEmitter
from rendergen.compiler.codegen.scope import PropertyReference
from rendergen.compiler.exceptions import CodegenError
from rendergen.compiler.ir import (
    AttributeType,
    IRAttribute,
    IRComment,
    IRComponent,
    IRElement,
    IRNode,
    IRSlot,
    IRText,
)

log = logging.getLogger(__name__)

# Parameter of conditional helpers; names with a leading underscore are
# reserved for generated code.
TEST_PARAM = "_t"

# Arguments the runtime iterator passes to every per-item helper
FOR_OF_PARTS = ("value", "index", "first", "last")

# Nodes produced for a list of children, and whether any of them evaluates to
# a nested list at runtime.
Rendered = Tuple[List[ast.expr], bool]


def _is_blank(node: IRNode) -> bool:
    return isinstance(node, IRText) and isinstance(node.value, str) and not node.value.strip()


def _conditional_kind(node: IRNode) -> Optional[str]:
    if isinstance(node, IRElement) and node.if_ is not None:
        return node.if_.kind
    return None


class TemplateCodegen:
    """Generates the render expression for a template root."""

    def __init__(
        self,
        context: CompilationContext,
        emitter: PrimitiveEmitter,
        binder: ExpressionBinder,
    ) -> None:
        self.context = context
        self.emitter = emitter
        self.binder = binder

    def transform(self, root: IRElement) -> ast.expr:
        return self._package(*self._transform_children(root.children, frozenset()))

    def _error(self, message: str, node: IRNode) -> CodegenError:
        return CodegenError(
            message, filename=self.context.config.name, line=node.line, column=node.column
        )

    def _bind(self, expression: ast.expr, local_names: AbstractSet[str]) -> ast.expr:
        return self.binder.bind(expression, local_names)

    # Children

    def _transform_children(
        self, children: Sequence[IRNode], local_names: FrozenSet[str]
    ) -> Rendered:
        entries: List[ast.expr] = []
        nested = False

        i = 0
        while i < len(children):
            child = children[i]
            kind = _conditional_kind(child)
            if kind in ("elseif", "else"):
                raise self._error(f"'{kind}' must follow an 'if' or 'elseif' sibling", child)

            if kind == "if":
                chain, next_index = self._collect_chain(children, i)
                if len(chain) > 1:
                    call = self._lower_chain(chain, local_names)
                    entries.append(ast.Starred(value=call, ctx=ast.Load()))
                    i = next_index
                    continue

            child_entries, child_nested = self._transform_node(child, local_names)
            entries.extend(child_entries)
            nested = nested or child_nested
            i += 1

        return entries, nested

    def _transform_node(self, node: IRNode, local_names: FrozenSet[str]) -> Rendered:
        if isinstance(node, IRText):
            value = node.value
            if not isinstance(value, str):
                value = self._bind(value, local_names)
            return [self.emitter.gen_text(value)], False
        if isinstance(node, IRComment):
            return [self.emitter.gen_comment(node.value)], False
        if isinstance(node, IRElement):
            if node.is_template:
                return self._transform_template(node, local_names)
            return self._transform_element(node, local_names)
        raise self._error(f"Unsupported IR node {type(node).__name__}", node)

    def _package(self, entries: List[ast.expr], nested: bool) -> ast.expr:
        """Turn children into one expression evaluating to a flat list."""
        if not nested:
            return ast.List(elts=entries, ctx=ast.Load())
        if len(entries) == 1 and not isinstance(entries[0], ast.Starred):
            return entries[0]
        return self.emitter.gen_flatten(entries)

    # Elements

    def _transform_element(
        self, element: IRElement, local_names: FrozenSet[str], conditional: bool = True
    ) -> Rendered:
        inner_names = self._enter_iteration(element, local_names)
        apply_if = conditional and element.if_ is not None
        if apply_if:
            self.context.push_scope("if")

        # The data bag goes first so parent keys precede child keys.
        data = self._element_data_bag(element, inner_names)
        children = self._package(*self._transform_children(element.children, inner_names))

        res: ast.expr
        if element.dynamic is not None:
            ctor = self._bind(element.dynamic, inner_names)
            res = self.emitter.gen_dynamic_element(element.tag, ctor, data, children)
        elif isinstance(element, IRComponent):
            res = self.emitter.gen_custom_element(element.tag, element.component, data, children)
        elif isinstance(element, IRSlot):
            res = self.emitter.gen_slot(element.slot_name, data, children)
        else:
            res = self.emitter.gen_element(element.tag, data, children)

        nested = isinstance(element, IRSlot)
        if apply_if:
            falsy = ast.List(elts=[], ctx=ast.Load()) if nested else None
            res = self._apply_if(element, res, inner_names, falsy=falsy)
        if element.has_iteration:
            res = self._apply_iteration(element, res, local_names)
            nested = True

        return [res], nested

    def _transform_template(self, element: IRElement, local_names: FrozenSet[str]) -> Rendered:
        inner_names = self._enter_iteration(element, local_names)
        if element.if_ is not None:
            self.context.push_scope("if")

        entries, nested = self._transform_children(element.children, inner_names)
        if element.if_ is not None:
            entries = self._apply_template_if(element, entries, nested, inner_names)

        if not element.has_iteration:
            # Fragment children are spliced into the parent
            return entries, nested

        if len(entries) == 1 and not isinstance(entries[0], ast.Starred):
            body = entries[0]
        else:
            body = self._package(entries, nested)
        return [self._apply_iteration(element, body, local_names)], True

    # Conditionals

    def _if_test(self, element: IRElement) -> ast.expr:
        assert element.if_ is not None
        param = ast.Name(id=TEST_PARAM, ctx=ast.Load())
        modifier = element.if_.modifier
        if modifier == "true":
            return param
        if modifier == "false":
            return ast.UnaryOp(op=ast.Not(), operand=param)
        if modifier == "strict-true":
            return ast.Compare(left=param, ops=[ast.Is()], comparators=[ast.Constant(value=True)])
        raise self._error(f"Unknown if modifier '{modifier}'", element)

    def _apply_if(
        self,
        element: IRElement,
        node: ast.expr,
        test_names: FrozenSet[str],
        falsy: Optional[ast.expr] = None,
    ) -> ast.Call:
        """Wrap ``node`` in ``def ifN(_t): return node if _t else falsy`` and call it."""
        assert element.if_ is not None and element.if_.test is not None
        left = self._if_test(element)
        scope = self.context.pop_scope()
        test = self._bind(element.if_.test, test_names)

        if falsy is None:
            if isinstance(node, ast.List):
                falsy = ast.List(elts=[ast.Constant(value=None) for _ in node.elts], ctx=ast.Load())
            else:
                falsy = ast.Constant(value=None)

        fn = scope.set_fn(
            [TEST_PARAM], [ast.Return(value=ast.IfExp(test=left, body=node, orelse=falsy))]
        )
        return ast.Call(func=fn, args=[test], keywords=[])

    def _apply_template_if(
        self,
        element: IRElement,
        entries: List[ast.expr],
        nested: bool,
        test_names: FrozenSet[str],
    ) -> List[ast.expr]:
        if len(entries) == 1 and not isinstance(entries[0], ast.Starred):
            single = entries[0]
            falsy = ast.List(elts=[], ctx=ast.Load()) if self.emitter.is_list_valued(single) else None
            return [self._apply_if(element, single, test_names, falsy=falsy)]

        # The test is evaluated once for all the fragment children
        call = self._apply_if(element, ast.List(elts=entries, ctx=ast.Load()), test_names)
        return [ast.Starred(value=call, ctx=ast.Load())]

    def _collect_chain(self, children: Sequence[IRNode], start: int) -> Tuple[List[IRElement], int]:
        """Gather an if node with its following elseif/else siblings."""
        head = children[start]
        assert isinstance(head, IRElement)
        chain = [head]
        end = start + 1

        j = start + 1
        while j < len(children):
            sibling = children[j]
            if _is_blank(sibling):
                j += 1
                continue
            kind = _conditional_kind(sibling)
            if kind not in ("elseif", "else"):
                break
            assert isinstance(sibling, IRElement)
            chain.append(sibling)
            j += 1
            end = j
            if kind == "else":
                break

        return chain, end

    def _branch(self, element: IRElement, local_names: FrozenSet[str]) -> ast.expr:
        """A chain branch as one list-valued expression."""
        if element.is_template:
            return self._package(*self._transform_children(element.children, local_names))
        return self._package(*self._transform_element(element, local_names, conditional=False))

    def _lower_chain(self, chain: List[IRElement], local_names: FrozenSet[str]) -> ast.Call:
        """if/elseif/else: each later branch lives in the false arm of the previous helper."""
        head = chain[0]
        self.context.push_scope("if")
        body = self._branch(head, local_names)

        rest = chain[1:]
        falsy: ast.expr
        if not rest:
            falsy = ast.List(elts=[], ctx=ast.Load())
        elif _conditional_kind(rest[0]) == "else":
            falsy = self._branch(rest[0], local_names)
        else:
            falsy = self._lower_chain(rest, local_names)

        return self._apply_if(head, body, local_names, falsy=falsy)

    # Iteration

    def _enter_iteration(self, element: IRElement, local_names: FrozenSet[str]) -> FrozenSet[str]:
        """Push the iteration scope, if any, and return the names visible inside it."""
        if element.for_each is not None:
            self.context.push_scope("foreach")
            names = {element.for_each.item}
            if element.for_each.index:
                names.add(element.for_each.index)
            return local_names | names
        if element.for_of is not None:
            self.context.push_scope("forof")
            return local_names | {element.for_of.iterator}
        return local_names

    def _apply_iteration(
        self, element: IRElement, node: ast.expr, outer_names: FrozenSet[str]
    ) -> ast.Call:
        scope = self.context.pop_scope()

        if element.for_each is not None:
            params = [element.for_each.item]
            if element.for_each.index:
                params.append(element.for_each.index)
            # The runtime always passes (value, index, first, last)
            fn = scope.set_fn(params, [ast.Return(value=node)], vararg="_")
            expression = element.for_each.expression
        else:
            assert element.for_of is not None
            name = element.for_of.iterator
            params = [f"{name}_{part}" for part in FOR_OF_PARTS]
            self.emitter.uses_namespace = True
            namespace = ast.Assign(
                targets=[ast.Name(id=name, ctx=ast.Store())],
                value=ast.Call(
                    func=ast.Name(id="SimpleNamespace", ctx=ast.Load()),
                    args=[],
                    keywords=[
                        ast.keyword(arg=part, value=ast.Name(id=param, ctx=ast.Load()))
                        for part, param in zip(FOR_OF_PARTS, params)
                    ],
                ),
            )
            fn = scope.set_fn(params, [namespace, ast.Return(value=node)])
            expression = element.for_of.expression

        iterable = self._bind(expression, outer_names)
        return self.emitter.gen_iterator(iterable, fn)

    # Data bag

    def _element_data_bag(self, element: IRElement, local_names: FrozenSet[str]) -> ast.Dict:
        keys: List[Optional[ast.expr]] = []
        values: List[ast.expr] = []

        def add(name: str, value: ast.expr) -> None:
            keys.append(ast.Constant(value=name))
            values.append(value)

        if element.class_name is not None:
            add("className", self._bind(element.class_name, local_names))

        if element.class_map:
            add("classMap", _dict({k: ast.Constant(value=True) for k in element.class_map}))

        if element.style_map:
            add("styleMap", _dict({k: ast.Constant(value=v) for k, v in element.style_map.items()}))

        if element.style is not None:
            add("style", self._bind(element.style, local_names))

        if element.attrs:
            add(
                "attrs",
                _dict(
                    {
                        name: self._attribute_value(attr, element, local_names, True)
                        for name, attr in element.attrs.items()
                    }
                ),
            )

        if element.props:
            add(
                "props",
                _dict(
                    {
                        name: self._attribute_value(attr, element, local_names, False)
                        for name, attr in element.props.items()
                    }
                ),
            )

        if element.dom:
            add("context", _dict({"lwc": _dict({"dom": ast.Constant(value=element.dom)})}))

        if element.for_key is not None:
            key_expr = self._bind(element.for_key, local_names)
            add("key", self.emitter.gen_key(self.emitter.generate_key(), key_expr))
        else:
            add("key", ast.Constant(value=self.emitter.generate_key()))

        if element.on:
            add(
                "on",
                _dict({event: self._event_handler(expr, local_names) for event, expr in element.on.items()}),
            )

        return ast.Dict(keys=keys, values=values)

    def _event_handler(self, expression: ast.expr, local_names: FrozenSet[str]) -> ast.expr:
        handler = self._bind(expression, local_names)
        # A bare component method outside of a loop is bound once per component
        if isinstance(handler, PropertyReference) and not self.context.current_scope.in_iteration:
            return self.emitter.gen_memoized_handler(handler)
        return self.emitter.gen_bind(handler)

    def _attribute_value(
        self,
        attr: IRAttribute,
        element: IRElement,
        local_names: FrozenSet[str],
        used_as_attribute: bool,
    ) -> ast.expr:
        name, tag, namespace = attr.name, element.tag, element.namespace
        scope_fragments = self.context.config.scope_fragment_ids

        if attr.type is AttributeType.EXPRESSION:
            assert isinstance(attr.value, ast.expr)
            bound = self._bind(attr.value, local_names)

            if used_as_attribute and is_boolean_attribute(name, tag):
                return self.emitter.gen_boolean_attribute_expr(bound)
            if name == "tabindex":
                return self.emitter.gen_tab_index(bound)
            if name == "id" or is_id_referencing_attribute(name):
                return self.emitter.gen_scoped_id(bound)
            if scope_fragments and is_allowed_frag_only_url(tag, name, namespace):
                return self.emitter.gen_scoped_frag_id(bound)
            if is_svg_use_href(tag, name, namespace):
                return self.emitter.gen_sanitize_attribute(
                    tag, namespace, name, self.emitter.gen_scoped_frag_id(bound)
                )
            return bound

        if attr.type is AttributeType.STRING:
            value = str(attr.value)

            if name == "id":
                return self.emitter.gen_scoped_id(value)
            if name == "spellcheck":
                return ast.Constant(value=value.lower() != "false")
            if not used_as_attribute and is_boolean_attribute(name, tag):
                # string value for a boolean attribute set as a property
                return ast.Constant(value=True)
            if is_id_referencing_attribute(name):
                return self.emitter.gen_scoped_id(value)
            if (
                scope_fragments
                and is_allowed_frag_only_url(tag, name, namespace)
                and is_fragment_only_url(value)
            ):
                return self.emitter.gen_scoped_frag_id(value)
            if is_svg_use_href(tag, name, namespace):
                scoped: ast.expr = (
                    self.emitter.gen_scoped_frag_id(value)
                    if is_fragment_only_url(value)
                    else ast.Constant(value=value)
                )
                return self.emitter.gen_sanitize_attribute(tag, namespace, name, scoped)
            return ast.Constant(value=value)

        # Boolean attributes are always set as '' on the element
        return ast.Constant(value="") if used_as_attribute else ast.Constant(value=attr.value)


def _dict(items: dict) -> ast.Dict:
    return ast.Dict(
        keys=[ast.Constant(value=k) for k in items],
        values=list(items.values()),
    )
