"""Per-compilation state."""

import itertools
import logging
from typing import Iterator, List

from rendergen.compiler.codegen.scope import Scope
from rendergen.compiler.exceptions import CodegenError
from rendergen.config import CompilerConfig

log = logging.getLogger(__name__)


class CompilationContext:
    """Counters and the scope stack for one template compilation.

    A new context is created for every call to ``compile_template`` so that
    identical input always produces identical output.
    """

    def __init__(self, config: CompilerConfig) -> None:
        self.config = config
        self._scope_ids: Iterator[int] = itertools.count()
        self._keys: Iterator[int] = itertools.count()
        self.root_scope = Scope(next(self._scope_ids))
        self._stack: List[Scope] = [self.root_scope]

    @property
    def current_scope(self) -> Scope:
        return self._stack[-1]

    def push_scope(self, kind: str) -> Scope:
        scope = Scope(next(self._scope_ids), parent=self.current_scope, kind=kind)
        self._stack.append(scope)
        log.debug("Entered scope %s (%s)", scope.id, kind)
        return scope

    def pop_scope(self) -> Scope:
        if len(self._stack) == 1:
            raise CodegenError("Cannot pop the root scope")
        return self._stack.pop()

    def next_key(self) -> int:
        return next(self._keys)

    def scopes(self) -> List[Scope]:
        """All scopes in creation order."""
        found: List[Scope] = []
        pending = [self.root_scope]
        while pending:
            scope = pending.pop()
            found.append(scope)
            pending.extend(reversed(scope.child_scopes))
        return sorted(found, key=lambda s: s.id)
