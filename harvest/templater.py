"""Template engine for ``${...}`` placeholders.

Attribute values and ``<template>`` bodies may contain placeholders::

    Hello, ${name}!
    ${http.status_code == 200}

A placeholder whose body is a bare name (``[A-Za-z_][A-Za-z0-9_-]*``) is a
plain context lookup; unbound names resolve to ``EMPTY``. Any other body is
evaluated by the scripting engine with the context's merged variables as its
environment.

If a template consists of exactly one placeholder, the placeholder's variable
is returned as-is, so lists, nodes and binary data flow through untouched.
Otherwise the string forms of all parts are concatenated.

``$${`` produces a literal ``${``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from harvest.context import ScopeContext
from harvest.exceptions import TemplateSyntaxError
from harvest.scripting import ScriptEngine
from harvest.variables import EMPTY, NodeVariable, Variable, create_variable

BARE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")

_OPEN = "${"
_ESCAPED_OPEN = "$${"


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    expression: str

    @property
    def is_bare_name(self) -> bool:
        return BARE_NAME.fullmatch(self.expression) is not None


Fragment = tuple[Literal | Placeholder, ...]


def _find_closing_brace(text: str, start: int) -> int:
    """Return the index of the ``}`` closing a placeholder body.

    Nested braces must balance; braces inside quoted string literals are
    ignored. Returns -1 when the body is never closed.
    """
    depth = 0
    quote: str | None = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return -1


@lru_cache(maxsize=2048)
def parse_template(text: str) -> Fragment:
    """Split template text into literal and placeholder parts.

    Results are cached; fragments are immutable and safe to share between
    threads.

    Args:
        text: Template source.

    Returns:
        Tuple of ``Literal`` and ``Placeholder`` parts in source order.

    Raises:
        TemplateSyntaxError: If a placeholder is never closed.
    """
    parts: list[Literal | Placeholder] = []
    literal: list[str] = []
    pos = 0
    while pos < len(text):
        if text.startswith(_ESCAPED_OPEN, pos):
            literal.append(_OPEN)
            pos += len(_ESCAPED_OPEN)
            continue
        if text.startswith(_OPEN, pos):
            body_start = pos + len(_OPEN)
            end = _find_closing_brace(text, body_start)
            if end < 0:
                raise TemplateSyntaxError(text, pos)
            if literal:
                parts.append(Literal("".join(literal)))
                literal = []
            parts.append(Placeholder(text[body_start:end].strip()))
            pos = end + 1
            continue
        next_dollar = text.find("$", pos + 1)
        if next_dollar < 0:
            next_dollar = len(text)
        literal.append(text[pos:next_dollar])
        pos = next_dollar

    if literal:
        parts.append(Literal("".join(literal)))
    return tuple(parts)


def has_placeholders(text: str | None) -> bool:
    return bool(text) and any(
        isinstance(part, Placeholder) for part in parse_template(text)
    )


def resolve_placeholder(
    placeholder: Placeholder,
    context: ScopeContext,
    engine: ScriptEngine,
) -> Variable:
    """Resolve one placeholder against the context.

    Args:
        placeholder: The parsed placeholder.
        context: Scope to look names up in.
        engine: Scripting engine for non-bare expressions.

    Returns:
        The resolved variable (``EMPTY`` for unbound names and blank bodies).

    Raises:
        ScriptException: If the expression fails to evaluate.
    """
    if not placeholder.expression:
        return EMPTY
    if placeholder.is_bare_name:
        return context.get_var(placeholder.expression)
    value = engine.evaluate(
        placeholder.expression, context.as_script_environment()
    )
    return create_variable(value)


def evaluate_to_variable(
    text: str | None,
    context: ScopeContext,
    engine: ScriptEngine,
) -> Variable:
    """Evaluate a template to a variable.

    Args:
        text: Template source; None or empty gives ``EMPTY``.
        context: Scope for name lookups and script environments.
        engine: Scripting engine for non-bare expressions.

    Returns:
        The placeholder's own variable when the template is exactly one
        placeholder, otherwise a ``NodeVariable`` of the concatenated text.
    """
    if not text:
        return EMPTY

    fragment = parse_template(text)
    if len(fragment) == 1 and isinstance(fragment[0], Placeholder):
        return resolve_placeholder(fragment[0], context, engine)

    pieces: list[str] = []
    for part in fragment:
        if isinstance(part, Literal):
            pieces.append(part.text)
        else:
            pieces.append(
                resolve_placeholder(part, context, engine).to_string()
            )
    return NodeVariable("".join(pieces))


def evaluate_to_string(
    text: str | None,
    context: ScopeContext,
    engine: ScriptEngine,
) -> str:
    """Evaluate a template to its string form (``""`` for None)."""
    return evaluate_to_variable(text, context, engine).to_string()
