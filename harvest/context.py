"""Scoped variable context.

A ``ScopeContext`` is a stack of frames, each mapping names to variables.
The outermost frame is the global scope and lives for one whole scraper run.
Processors that introduce a lexical block (loop iterations, function calls,
regexp matches) push a local frame and pop it when the block ends.

Lookups walk frames innermost to outermost and the first match wins. An
unbound name is not an error: it resolves to ``EMPTY``.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from harvest.exceptions import ScopeException
from harvest.variables import EMPTY, Variable, create_variable


class ScopeContext:
    """Stack of name to variable frames with lexical shadowing.

    Example::

        context = ScopeContext()
        context.set_local_var("x", "outer")
        with context.scope():
            context.set_local_var("x", "inner")
            context.get_var("x")  # NodeVariable("inner")
        context.get_var("x")  # NodeVariable("outer")
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        """Initialize the context with only the global frame.

        Args:
            initial: Optional values to bind in the global frame.
        """
        self._frames: list[dict[str, Variable]] = [{}]
        for name, value in (initial or {}).items():
            self.set_global_var(name, value)

    @property
    def depth(self) -> int:
        """Number of active frames, including the global one."""
        return len(self._frames)

    def push_scope(self) -> None:
        self._frames.append({})

    def pop_scope(self) -> None:
        """Discard the innermost frame.

        Raises:
            ScopeException: If only the global frame is left.
        """
        if len(self._frames) == 1:
            raise ScopeException("Cannot pop the global scope")
        self._frames.pop()

    @contextmanager
    def scope(self) -> Generator[ScopeContext, None, None]:
        """Run a block inside a new local frame.

        The frame is popped however the block ends: normal return, an
        exception, or early exit.
        """
        self.push_scope()
        try:
            yield self
        finally:
            self.pop_scope()

    def set_local_var(self, name: str, value: Any) -> Variable:
        """Bind a value in the innermost frame.

        Args:
            name: Variable name.
            value: Any value; normalized with ``create_variable``.

        Returns:
            The variable that was bound.
        """
        variable = create_variable(value)
        self._frames[-1][name] = variable
        return variable

    def set_global_var(self, name: str, value: Any) -> Variable:
        variable = create_variable(value)
        self._frames[0][name] = variable
        return variable

    def replace_existing_var(self, name: str, value: Any) -> Variable:
        """Rebind a name in the innermost frame that already holds it.

        Falls back to binding in the innermost frame when the name is unbound.
        """
        variable = create_variable(value)
        for frame in reversed(self._frames):
            if name in frame:
                frame[name] = variable
                return variable
        self._frames[-1][name] = variable
        return variable

    def get_var(self, name: str) -> Variable:
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        return EMPTY

    def contains_var(self, name: str) -> bool:
        return any(name in frame for frame in reversed(self._frames))

    def iterator(self) -> Iterator[tuple[str, Variable]]:
        """Yield ``(name, variable)`` pairs of the merged, shadowed view.

        Each call returns a fresh single-pass generator. Inner frames shadow
        outer ones.
        """
        seen: set[str] = set()
        for frame in reversed(self._frames):
            for name, variable in list(frame.items()):
                if name not in seen:
                    seen.add(name)
                    yield name, variable

    def __iter__(self) -> Iterator[tuple[str, Variable]]:
        return self.iterator()

    def as_script_environment(self) -> dict[str, Any]:
        """Snapshot the merged view as plain Python values for scripts."""
        return {name: variable.wrapped_object() for name, variable in self}

    def global_variables(self) -> dict[str, Variable]:
        return dict(self._frames[0])

    def clear(self) -> None:
        """Drop every frame and start over with an empty global frame."""
        self._frames = [{}]
