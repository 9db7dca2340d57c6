"""Binds template expressions to the component instance."""

import ast
import builtins
import copy
from typing import AbstractSet, Any

from rendergen.compiler.codegen.context import CompilationContext

_BUILTINS = frozenset(dir(builtins))


class ExpressionBinder:
    """
    Rewrites every component property read in an expression into a placeholder
    registered in the currently active scope:

        {value}                 -> {<ref value>}
        {value[index]}          -> {<ref value>[index]}     (index is a loop local)
        {row.cells[col]}        -> {<ref row>.cells[<ref col>]}
        {sorted(rows, key=len)} -> {sorted(<ref rows>, key=len)}
    """

    def __init__(self, context: CompilationContext) -> None:
        self.context = context

    def is_component_prop(self, name: str, local_names: AbstractSet[str]) -> bool:
        return name not in local_names

    def bind(self, expression: ast.expr, local_names: AbstractSet[str]) -> ast.expr:
        # The IR is shared with the caller; work on a copy.
        expression = copy.deepcopy(expression)

        if isinstance(expression, ast.Name):
            if self.is_component_prop(expression.id, local_names):
                return self.context.current_scope.reference(expression.id)
            return expression

        return _PropertyRewriter(self, local_names).visit(expression)


class _PropertyRewriter(ast.NodeTransformer):
    def __init__(self, binder: ExpressionBinder, local_names: AbstractSet[str]) -> None:
        self.binder = binder
        self.local_names = local_names

    def visit_Name(self, node: ast.Name) -> Any:
        if not isinstance(node.ctx, ast.Load):
            return node
        if not self.binder.is_component_prop(node.id, self.local_names):
            return node
        return self.binder.context.current_scope.reference(node.id)

    def _is_builtin(self, node: ast.expr) -> bool:
        return (
            isinstance(node, ast.Name)
            and node.id in _BUILTINS
            and node.id not in self.local_names
        )

    def visit_Call(self, node: ast.Call) -> Any:
        # len(items) and sorted(rows, key=len) keep the builtins; everything
        # else in the call is bound
        if not self._is_builtin(node.func):
            node.func = self.visit(node.func)
        node.args = [arg if self._is_builtin(arg) else self.visit(arg) for arg in node.args]
        for keyword in node.keywords:
            if not self._is_builtin(keyword.value):
                keyword.value = self.visit(keyword.value)
        return node

    def _visit_with_locals(self, node: ast.AST, names: AbstractSet[str]) -> Any:
        inner = _PropertyRewriter(self.binder, self.local_names | names)
        return inner.generic_visit(node)

    def _visit_comprehension(self, node: ast.AST) -> Any:
        # [label for label in labels]: 'label' is bound by the comprehension
        names = {
            target.id
            for generator in node.generators  # type: ignore[attr-defined]
            for target in ast.walk(generator.target)
            if isinstance(target, ast.Name)
        }
        return self._visit_with_locals(node, names)

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension
    visit_DictComp = _visit_comprehension

    def visit_Lambda(self, node: ast.Lambda) -> Any:
        args = node.args
        names = {a.arg for a in args.posonlyargs + args.args + args.kwonlyargs}
        if args.vararg:
            names.add(args.vararg.arg)
        if args.kwarg:
            names.add(args.kwarg.arg)
        return self._visit_with_locals(node, names)
