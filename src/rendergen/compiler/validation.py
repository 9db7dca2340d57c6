"""Checks on the IR handed to the code generator.

The template parser guarantees most of these; they are repeated here because
generated code must never shadow its own locals or fail to compile.
"""

import keyword
import re
from typing import Iterator

from rendergen.compiler.exceptions import InvalidTemplateError
from rendergen.compiler.ir import (
    IF_MODIFIERS,
    IRComponent,
    IRElement,
    IRNode,
)

# Names bound by the generated module or render function
RESERVED_NAMES = frozenset(
    {
        "api",
        "instance",
        "slot_set",
        "context",
        "modules",
        "tmpl",
        "template",
        "create_template",
        "SimpleNamespace",
        "sanitize_attribute",
        "register_template",
    }
)

COMPONENT_REFERENCE_RE = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_]\w*$")


def _walk(node: IRNode) -> Iterator[IRNode]:
    yield node
    if isinstance(node, IRElement):
        for child in node.children:
            yield from _walk(child)


def _error(message: str, node: IRNode, filename: str) -> InvalidTemplateError:
    return InvalidTemplateError(message, filename=filename, line=node.line, column=node.column)


def check_binding_name(name: str, node: IRNode, filename: str = "") -> None:
    """Loop bindings become parameters of generated helpers."""
    if not name.isidentifier() or keyword.iskeyword(name):
        raise _error(f"'{name}' is not a valid loop variable name", node, filename)
    if name.startswith("_") or name.startswith("api_") or name in RESERVED_NAMES:
        raise _error(f"'{name}' is reserved and cannot be used as a loop variable", node, filename)


def validate_element(element: IRElement, filename: str = "") -> None:
    directive = element.if_
    if directive is not None:
        if directive.kind not in ("if", "elseif", "else"):
            raise _error(f"Unknown conditional directive '{directive.kind}'", element, filename)
        if directive.kind == "else":
            if directive.test is not None:
                raise _error("'else' does not take an expression", element, filename)
        elif directive.test is None:
            raise _error(f"'{directive.kind}' requires an expression", element, filename)
        if directive.modifier not in IF_MODIFIERS:
            raise _error(
                f"Unknown if modifier '{directive.modifier}', expected one of: "
                f"{', '.join(IF_MODIFIERS)}",
                element,
                filename,
            )
        if directive.kind != "if" and element.has_iteration:
            raise _error(
                f"'{directive.kind}' cannot be combined with an iteration directive",
                element,
                filename,
            )

    if element.for_each is not None and element.for_of is not None:
        raise _error("for:each and iterator directives cannot be combined", element, filename)

    if element.for_each is not None:
        check_binding_name(element.for_each.item, element, filename)
        if element.for_each.index is not None:
            check_binding_name(element.for_each.index, element, filename)
            if element.for_each.index == element.for_each.item:
                raise _error(
                    f"for:item and for:index cannot both be '{element.for_each.item}'",
                    element,
                    filename,
                )

    if element.for_of is not None:
        check_binding_name(element.for_of.iterator, element, filename)

    if element.for_key is not None and element.is_template:
        raise _error("key is not allowed on a template fragment", element, filename)

    if isinstance(element, IRComponent) and not COMPONENT_REFERENCE_RE.match(element.component):
        raise _error(
            f"Component reference '{element.component}' must look like 'package.module:Class'",
            element,
            filename,
        )


def _validate_chains(element: IRElement, filename: str) -> None:
    """An if that heads an elseif/else chain cannot also iterate."""
    children = [c for c in element.children if isinstance(c, IRElement)]
    for previous, current in zip(children, children[1:]):
        if current.if_ is None or current.if_.kind == "if":
            continue
        if previous.if_ is not None and previous.if_.kind == "if" and previous.has_iteration:
            raise _error(
                "An 'if' followed by elseif/else cannot be combined with an iteration directive",
                previous,
                filename,
            )


def validate_template(root: IRNode, filename: str = "") -> None:
    """Raise ``InvalidTemplateError`` if ``root`` cannot be compiled."""
    if type(root) is not IRElement or not root.is_template:
        raise _error("The root node must be a <template> element", root, filename)
    if root.if_ is not None or root.has_iteration:
        raise _error("The root <template> cannot carry directives", root, filename)

    for node in _walk(root):
        if isinstance(node, IRElement):
            if node is not root:
                validate_element(node, filename)
            _validate_chains(node, filename)
