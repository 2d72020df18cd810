"""Control-flow processors: branching, looping, functions and exit.

Loop iterations and function calls each run in a fresh local scope, so
variables defined inside them disappear when the iteration or call ends.
Use ``<set>`` to update a variable from an enclosing scope.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.definition import ElementDef
from harvest.exceptions import ConfigurationException, HarvestException
from harvest.processors.base import BaseProcessor, CallFrame
from harvest.processors.registry import processor
from harvest.templater import evaluate_to_string
from harvest.variables import EMPTY, ListVariable, Variable, is_boolean_true

if TYPE_CHECKING:
    from harvest.scraper import Scraper


@processor("if", required=("condition",))
class IfProcessor(BaseProcessor):
    """Run the body when the condition is ``1``, ``true`` or ``yes``."""

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        if self.is_attr_true("condition", scraper, context):
            return self.execute_body(scraper, context)
        return EMPTY


@processor("case", structural={"if": ("condition",), "else": ()})
class CaseProcessor(BaseProcessor):
    """Run the first ``<if>`` branch whose condition holds, else ``<else>``.

    Example::

        <case>
            <if condition="${count == 0}">none</if>
            <if condition="${count == 1}">one</if>
            <else>many</else>
        </case>
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        engine = scraper.script_engine()
        for branch in self.element_def.children:
            if branch.tag == "if":
                condition = evaluate_to_string(
                    branch.get("condition"), context, engine
                )
                if is_boolean_true(condition):
                    return self.execute_body(scraper, context, branch)
            elif branch.tag == "else":
                return self.execute_body(scraper, context, branch)
        return EMPTY


def parse_range(token: str, max_value: int) -> tuple[int, int]:
    """Parse ``n``, ``a-b``, ``a-`` or ``-b`` into an inclusive 1-based range.

    Missing bounds default to 1 and ``max_value``.

    Raises:
        ValueError: If a bound is not an integer.
    """
    if "-" not in token:
        value = int(token)
        return value, value
    start, _, end = token.partition("-")
    return (
        int(start) if start.strip() else 1,
        int(end) if end.strip() else max_value,
    )


def filter_items(items: list[Variable], expression: str) -> list[Variable]:
    """Apply a loop filter to a list of items.

    The filter is a comma-separated list of tokens. Positions and ranges
    (``2``, ``2-5``, ``3-``, ``-4``; 1-based) select the union of the
    matching items in their original order. The keywords ``odd``, ``even``
    and ``unique`` are then applied in the order given.

    Raises:
        ConfigurationException: For tokens that are neither keywords nor ranges.
    """
    keywords: list[str] = []
    selected: set[int] = set()
    has_ranges = False
    for raw in expression.split(","):
        token = raw.strip().lower()
        if not token:
            continue
        if token in ("odd", "even", "unique"):
            keywords.append(token)
            continue
        try:
            start, end = parse_range(token, len(items))
        except ValueError as e:
            raise ConfigurationException(
                f"Invalid loop filter token '{token}'", {"filter": expression}
            ) from e
        has_ranges = True
        selected.update(range(max(start, 1), min(end, len(items)) + 1))

    if has_ranges:
        items = [item for i, item in enumerate(items, 1) if i in selected]

    for keyword in keywords:
        if keyword == "odd":
            items = items[0::2]
        elif keyword == "even":
            items = items[1::2]
        else:
            seen: set[str] = set()
            unique: list[Variable] = []
            for item in items:
                text = item.to_string()
                if text not in seen:
                    seen.add(text)
                    unique.append(item)
            items = unique
    return items


@processor(
    "loop",
    attributes=("item", "index", "maxloops", "filter", "empty"),
    structural={"list": (), "body": ()},
)
class LoopProcessor(BaseProcessor):
    """Run ``<body>`` once for every item of ``<list>``.

    Each iteration runs in its own scope with the current item bound to the
    ``item`` name and the 1-based position bound to the ``index`` name.

    Example::

        <loop item="link" index="i" filter="unique" maxloops="10">
            <list><xpath expression="//a/@href"><get var="page"/></xpath></list>
            <body><template>${i}: ${link}</template></body>
        </loop>
    """

    def _structural_child(self, tag: str) -> ElementDef:
        child = self.element_def.child(tag)
        if child is None:
            raise ConfigurationException(
                f"<loop> requires a <{tag}> child",
                {"line": self.element_def.line},
            )
        return child

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        list_def = self._structural_child("list")
        body_def = self._structural_child("body")
        item_name = self.evaluate_attr("item", scraper, context)
        index_name = self.evaluate_attr("index", scraper, context)
        max_loops = self.int_attr("maxloops", scraper, context)
        filter_expression = self.evaluate_attr("filter", scraper, context)
        empty = self.is_attr_true("empty", scraper, context)

        items = self.execute_body(scraper, context, list_def).to_list()
        if filter_expression:
            items = filter_items(items, filter_expression)
        if scraper.is_stopped:
            return EMPTY

        results: list[Variable] = []
        for index, item in enumerate(items, 1):
            if max_loops is not None and index > max_loops:
                break
            with context.scope():
                if item_name:
                    context.set_local_var(item_name, item)
                if index_name:
                    context.set_local_var(index_name, index)
                results.append(self.execute_body(scraper, context, body_def))
            if scraper.is_stopped:
                break

        return EMPTY if empty else ListVariable(results)


@processor(
    "while",
    attributes=("index", "maxloops", "empty"),
    required=("condition",),
)
class WhileProcessor(BaseProcessor):
    """Run the body while the condition holds.

    The condition is re-evaluated before every pass, inside the new scope,
    so it can refer to the ``index`` variable.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        index_name = self.evaluate_attr("index", scraper, context)
        max_loops = self.int_attr("maxloops", scraper, context)
        empty = self.is_attr_true("empty", scraper, context)

        results: list[Variable] = []
        index = 1
        while max_loops is None or index <= max_loops:
            with context.scope():
                if index_name:
                    context.set_local_var(index_name, index)
                if not self.is_attr_true("condition", scraper, context):
                    break
                results.append(self.execute_body(scraper, context))
            if scraper.is_stopped:
                break
            index += 1

        return EMPTY if empty else ListVariable(results)


@processor("exit", attributes=("condition", "message"))
class ExitProcessor(BaseProcessor):
    """Stop the whole run when the condition holds.

    An absent or empty condition counts as true. Early exit is not an error:
    the scraper finishes with status ``EXIT`` and the evaluated message.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        condition = self.evaluate_attr("condition", scraper, context)
        if not condition:
            condition = "true"

        if is_boolean_true(condition):
            message = self.evaluate_attr("message", scraper, context)
            scraper.exit_execution(message)
            scraper.logger.info(f"Configuration exited: {message}")

        return EMPTY


# =============================================================================
# User functions
# =============================================================================


@processor("function", required=("name",))
class FunctionProcessor(BaseProcessor):
    """Define a function; its body runs only when called."""

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        name = self.evaluate_attr("name", scraper, context)
        scraper.functions[name] = self.element_def
        return EMPTY


@processor("call", required=("name",), structural={"call-param": ("name",)})
class CallProcessor(BaseProcessor):
    """Call a function defined with ``<function>``.

    Parameters are evaluated in the caller's scope and bound in a new scope
    for the function body. The result is the value given to ``<return>``, or
    the body's result when the function never returns explicitly.

    Example::

        <call name="download">
            <call-param name="url">${base}/page/${i}</call-param>
        </call>
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        name = self.evaluate_attr("name", scraper, context)
        function_def = scraper.functions.get(name)
        if function_def is None:
            raise HarvestException(f"Function '{name}' is not defined")

        engine = scraper.script_engine()
        params: dict[str, Variable] = {}
        for param_def in self.element_def.children_by_tag("call-param"):
            param_name = evaluate_to_string(param_def.get("name"), context, engine)
            params[param_name] = self.execute_body(scraper, context, param_def)
            if scraper.is_stopped:
                return EMPTY

        frame = CallFrame(name)
        scraper.call_stack.append(frame)
        try:
            with context.scope():
                for param_name, value in params.items():
                    context.set_local_var(param_name, value)
                body_result = self.execute_body(scraper, context, function_def)
        finally:
            scraper.call_stack.pop()

        if scraper.is_stopped:
            return EMPTY
        return frame.result if frame.result is not None else body_result


@processor("return", attributes=("value",))
class ReturnProcessor(BaseProcessor):
    """Set the result of the innermost running function call."""

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        if not scraper.call_stack:
            raise HarvestException("<return> used outside of a function call")
        if self.element_def.has("value"):
            value = self.evaluate_attr_variable("value", scraper, context)
        else:
            value = self.execute_body(scraper, context)
            if scraper.is_stopped:
                return EMPTY
        scraper.call_stack[-1].result = value
        return EMPTY
