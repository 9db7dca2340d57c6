"""IR node definitions consumed by the code generator.

The IR is produced by the template parser and validator. The code generator
treats it as read-only.
"""

import ast
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from rendergen.compiler.exceptions import InvalidTemplateError

HTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
SVG_NAMESPACE = "http://www.w3.org/2000/svg"

IF_MODIFIERS = ("true", "false", "strict-true")


def parse_expression(source: str, line: int = 0, column: int = 0) -> ast.expr:
    """Parse a template expression such as ``item.label`` into an AST."""
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise InvalidTemplateError(
            f"Invalid template expression '{source}': {e.msg}", line=line, column=column
        ) from e
    if line > 0:
        ast.increment_lineno(tree, line - 1)
    return tree.body


class AttributeType(enum.Enum):
    EXPRESSION = "expression"
    STRING = "string"
    BOOLEAN = "boolean"


@dataclass
class IRNode:
    """Base for all IR nodes."""

    line: int = field(default=0, kw_only=True)
    column: int = field(default=0, kw_only=True)


@dataclass
class IRAttribute:
    """Attribute or property bound on an element."""

    name: str
    value: Union[str, bool, ast.expr]
    type: AttributeType = AttributeType.STRING

    def __str__(self) -> str:
        return f"IRAttribute(name={self.name}, type={self.type.value})"


@dataclass
class IfDirective:
    """if:true / if:false / if:strict-true, plus elseif and else branches."""

    test: Optional[ast.expr] = None
    modifier: str = "true"
    kind: str = "if"  # 'if', 'elseif' or 'else'

    def __str__(self) -> str:
        return f"IfDirective(kind={self.kind}, modifier={self.modifier})"


@dataclass
class ForEach:
    """for:each={items} for:item="item" for:index="index"."""

    expression: ast.expr
    item: str
    index: Optional[str] = None

    def __str__(self) -> str:
        return f"ForEach(item={self.item}, index={self.index})"


@dataclass
class ForOf:
    """iterator:it={items}; exposes it.value, it.index, it.first, it.last."""

    expression: ast.expr
    iterator: str

    def __str__(self) -> str:
        return f"ForOf(iterator={self.iterator})"


@dataclass
class IRText(IRNode):
    """Static text, or a single expression rendered as text."""

    value: Union[str, ast.expr] = ""

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return f"IRText(text={self.value[:30]})"
        return "IRText(expression)"


@dataclass
class IRComment(IRNode):
    value: str = ""


@dataclass
class IRElement(IRNode):
    """HTML element. ``tag == 'template'`` marks a fragment."""

    tag: str = "template"
    namespace: str = HTML_NAMESPACE
    children: List[IRNode] = field(default_factory=list)
    attrs: Dict[str, IRAttribute] = field(default_factory=dict)
    props: Dict[str, IRAttribute] = field(default_factory=dict)
    on: Dict[str, ast.expr] = field(default_factory=dict)
    class_name: Optional[ast.expr] = None
    class_map: Dict[str, bool] = field(default_factory=dict)
    style: Optional[ast.expr] = None
    style_map: Dict[str, str] = field(default_factory=dict)
    if_: Optional[IfDirective] = None
    for_each: Optional[ForEach] = None
    for_of: Optional[ForOf] = None
    for_key: Optional[ast.expr] = None
    dynamic: Optional[ast.expr] = None
    dom: Optional[str] = None

    @property
    def is_template(self) -> bool:
        return self.tag == "template"

    @property
    def has_iteration(self) -> bool:
        return self.for_each is not None or self.for_of is not None

    def __str__(self) -> str:
        return (
            f"{type(self).__name__}(tag={self.tag}, attrs={len(self.attrs)}, "
            f"props={len(self.props)}, children={len(self.children)})"
        )


@dataclass
class IRComponent(IRElement):
    """Custom element backed by a component class (``'module:attr'``)."""

    component: str = ""


@dataclass
class IRSlot(IRElement):
    """<slot>; ``slot_name`` is '' for the default slot."""

    tag: str = "slot"
    slot_name: str = ""
