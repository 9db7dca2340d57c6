"""Scope tree and property hoisting.

Every conditional or iteration block in a template becomes a nested helper
function in the render function. Each of those lexical regions is a ``Scope``.
While the template is walked, component property reads are recorded in the
scope that is active at the time, as ``PropertyReference`` placeholders that
share one ``PropertyUsage`` record per (scope, property).

Once the walk is done:

1. ``collect_descendant_usage`` folds, bottom-up, the names used below each
   scope.
2. ``dump_scope`` decides top-down where each property is read: reuse an
   ancestor's local, hoist it into a local of this scope, or keep the direct
   ``instance.<name>`` access.
3. ``resolve_references`` rewrites each recorded site to the decided
   expression, at the slot it occupies in the finished tree.
"""

import ast
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from rendergen.compiler.exceptions import CodegenError

log = logging.getLogger(__name__)

INSTANCE = "instance"


class PropertyReference(ast.expr):
    """Placeholder for a component property read, resolved after scope analysis."""

    _fields = ()

    def __init__(self, usage: "PropertyUsage") -> None:
        super().__init__()
        self.usage = usage


@dataclass
class PropertyUsage:
    name: str
    alias: str
    occurrences: int = 0
    sites: List[PropertyReference] = field(default_factory=list)
    resolved: bool = False
    # None means direct ``instance.<name>`` access
    resolution: Optional[str] = None

    def resolve(self, alias: Optional[str]) -> None:
        self.resolution = alias
        self.resolved = True

    def target(self) -> ast.expr:
        if not self.resolved:
            raise CodegenError(f"Unresolved reference to component property '{self.name}'")
        if self.resolution is None:
            return instance_member(self.name)
        return ast.Name(id=self.resolution, ctx=ast.Load())


def instance_member(name: str) -> ast.Attribute:
    return ast.Attribute(
        value=ast.Name(id=INSTANCE, ctx=ast.Load()), attr=name, ctx=ast.Load()
    )


def destructure(targets: List[str], values: List[ast.expr]) -> ast.Assign:
    """``a, b = (x, y)``, or a plain assignment for a single name."""
    if len(targets) == 1:
        return ast.Assign(targets=[ast.Name(id=targets[0], ctx=ast.Store())], value=values[0])
    return ast.Assign(
        targets=[
            ast.Tuple(elts=[ast.Name(id=t, ctx=ast.Store()) for t in targets], ctx=ast.Store())
        ],
        value=ast.Tuple(elts=values, ctx=ast.Load()),
    )


class Scope:
    def __init__(self, scope_id: int, parent: Optional["Scope"] = None, kind: str = "root") -> None:
        self.id = scope_id
        self.parent = parent
        self.kind = kind
        self.child_scopes: List["Scope"] = []
        self.main_fn: Optional[ast.FunctionDef] = None
        self.usages: Dict[str, PropertyUsage] = {}
        self.descendant_usage: FrozenSet[str] = frozenset()

        if parent is not None:
            self.fn_name = f"{kind}{scope_id}_{len(parent.child_scopes)}"
            parent.child_scopes.append(self)
        else:
            self.fn_name = ""

    def __repr__(self) -> str:
        return f"Scope(id={self.id}, kind={self.kind}, usages={list(self.usages)})"

    @property
    def in_iteration(self) -> bool:
        scope: Optional[Scope] = self
        while scope is not None:
            if scope.kind in ("foreach", "forof"):
                return True
            scope = scope.parent
        return False

    def reference(self, name: str) -> PropertyReference:
        """Record a read of ``name`` in this scope and return a placeholder for it."""
        usage = self.usages.get(name)
        if usage is None:
            usage = PropertyUsage(name=name, alias=f"_cv{self.id}_{len(self.usages)}")
            self.usages[name] = usage
        usage.occurrences += 1
        ref = PropertyReference(usage)
        usage.sites.append(ref)
        return ref

    def set_fn(
        self, params: List[str], body: List[ast.stmt], vararg: Optional[str] = None
    ) -> ast.Name:
        """Attach the helper function for this scope and return a reference to it."""
        if self.parent is None:
            raise CodegenError("The root scope cannot own a helper function")
        self.main_fn = ast.FunctionDef(
            name=self.fn_name,
            args=ast.arguments(
                posonlyargs=[],
                args=[ast.arg(arg=p) for p in params],
                vararg=ast.arg(arg=vararg) if vararg else None,
                kwonlyargs=[],
                kw_defaults=[],
                kwarg=None,
                defaults=[],
            ),
            body=body,
            decorator_list=[],
            returns=None,
        )
        return ast.Name(id=self.fn_name, ctx=ast.Load())


def collect_descendant_usage(scope: Scope) -> FrozenSet[str]:
    """Fill ``descendant_usage`` bottom-up; returns names used in ``scope`` or below."""
    below: FrozenSet[str] = frozenset()
    for child in scope.child_scopes:
        below = below | collect_descendant_usage(child)
    scope.descendant_usage = below
    return below | frozenset(scope.usages)


def dump_scope(scope: Scope, inherited: Optional[Dict[str, str]] = None) -> List[ast.stmt]:
    """Decide where each property is read and return the scope's leading statements.

    The returned list holds the hoisting assignment for this scope (if any)
    followed by the helper functions of the child scopes in declaration order.
    Child helper bodies get their own leading statements prepended.
    """
    if inherited is None:
        inherited = {}

    hoisted: List[PropertyUsage] = []
    for usage in scope.usages.values():
        if usage.name in inherited:
            usage.resolve(inherited[usage.name])
        elif usage.occurrences > 1 or usage.name in scope.descendant_usage:
            usage.resolve(usage.alias)
            hoisted.append(usage)
        else:
            usage.resolve(None)

    if hoisted:
        log.debug(
            "Scope %s hoists %s", scope.id, ", ".join(u.name for u in hoisted)
        )

    available = dict(inherited)
    available.update((u.name, u.alias) for u in hoisted)

    statements: List[ast.stmt] = []
    if hoisted:
        statements.append(
            destructure([u.alias for u in hoisted], [instance_member(u.name) for u in hoisted])
        )

    for child in scope.child_scopes:
        if child.main_fn is None:
            raise CodegenError(f"Scope {child.id} ({child.kind}) was never lowered")
        child.main_fn.body[0:0] = dump_scope(child, available)
        statements.append(child.main_fn)

    return statements


# Where a placeholder sits: (parent node, field name, list index or None)
Slot = Tuple[ast.AST, str, Optional[int]]


def index_reference_slots(tree: ast.AST) -> Dict[int, List[Slot]]:
    """Map each placeholder in ``tree`` (by ``id``) to the slots holding it."""
    slots: Dict[int, List[Slot]] = {}
    for parent in ast.walk(tree):
        for name, value in ast.iter_fields(parent):
            if isinstance(value, PropertyReference):
                slots.setdefault(id(value), []).append((parent, name, None))
            elif isinstance(value, list):
                for i, item in enumerate(value):
                    if isinstance(item, PropertyReference):
                        slots.setdefault(id(item), []).append((parent, name, i))
    return slots


def _slot_value(slot: Slot) -> ast.AST:
    parent, name, index = slot
    value = getattr(parent, name)
    return value if index is None else value[index]


def resolve_references(tree: ast.AST) -> int:
    """Rewrite every placeholder in ``tree`` in place; returns how many were rewritten.

    The usage records found in the tree are visited in first-seen order and
    each of their recorded sites is replaced at its indexed slot. Sites that
    never made it into ``tree`` are skipped.
    """
    slots = index_reference_slots(tree)

    usages: Dict[int, PropertyUsage] = {}
    for site_slots in slots.values():
        ref = _slot_value(site_slots[0])
        assert isinstance(ref, PropertyReference)
        usages.setdefault(id(ref.usage), ref.usage)

    count = 0
    for usage in usages.values():
        for site in usage.sites:
            for parent, name, index in slots.get(id(site), []):
                if index is None:
                    setattr(parent, name, usage.target())
                else:
                    getattr(parent, name)[index] = usage.target()
                count += 1
    return count
