"""Extraction processors: XPath, regular expressions and tokenizing."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.definition import ElementDef
from harvest.exceptions import ConfigurationException
from harvest.processors.base import BaseProcessor
from harvest.processors.registry import processor
from harvest.templater import BARE_NAME
from harvest.variables import (
    EMPTY,
    ListVariable,
    NodeVariable,
    Variable,
    create_variable,
)
from harvest.xml import evaluate_xpath, parse_xml

if TYPE_CHECKING:
    from harvest.scraper import Scraper


@processor("xpath", required=("expression",))
class XPathProcessor(BaseProcessor):
    """Evaluate an XPath expression against the body's XML.

    Variables of the current context are visible to the expression as
    ``$name`` (their string values). Element results are returned as nodes
    and serialized only when their text is needed.

    Example::

        <xpath expression="//div[@class=$cls]/a/@href">
            <html-to-xml><get var="page"/></html-to-xml>
        </xpath>
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        expression = self.evaluate_attr("expression", scraper, context)
        markup = self.body_to_string(scraper, context)
        if scraper.is_stopped or not markup.strip():
            return EMPTY

        variables = {
            name: value.to_string(scraper.charset)
            for name, value in context.iterator()
            if BARE_NAME.fullmatch(name)
        }
        root = parse_xml(markup)
        return create_variable(evaluate_xpath(root, expression, variables))


_REGEXP_FLAGS = {
    "flag-caseinsensitive": re.IGNORECASE,
    "flag-multiline": re.MULTILINE,
    "flag-dotall": re.DOTALL,
}


@processor(
    "regexp",
    attributes=("max", "replace", *_REGEXP_FLAGS),
    structural={"regexp-pattern": (), "regexp-source": (), "regexp-result": ()},
)
class RegexpProcessor(BaseProcessor):
    """Match a regular expression against every item of the source.

    For each match (up to ``max`` per item; zero or negative means no
    limit) the groups are bound in a new scope as ``_0`` (the whole match),
    ``_1``, ``_2``, ... and by name for named groups; then
    ``<regexp-result>`` is evaluated. Without a ``<regexp-result>`` the
    whole match is returned.

    With ``replace="true"`` each match (again up to ``max`` per item) is
    replaced by its result instead, and the processor returns the rewritten
    source items.

    Example::

        <regexp>
            <regexp-pattern>(?P<label>\\w+)=(\\d+)</regexp-pattern>
            <regexp-source><get var="query"/></regexp-source>
            <regexp-result><template>${label}: ${_2}</template></regexp-result>
        </regexp>
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        pattern_def = self.element_def.child("regexp-pattern")
        source_def = self.element_def.child("regexp-source")
        if pattern_def is None or source_def is None:
            raise ConfigurationException(
                "<regexp> requires <regexp-pattern> and <regexp-source>",
                {"line": self.element_def.line},
            )
        result_def = self.element_def.child("regexp-result")

        pattern_text = self.body_to_string(scraper, context, pattern_def)
        if scraper.is_stopped:
            return EMPTY
        flags = 0
        for attribute, flag in _REGEXP_FLAGS.items():
            if self.is_attr_true(attribute, scraper, context):
                flags |= flag
        try:
            pattern = re.compile(pattern_text, flags)
        except re.error as e:
            raise ConfigurationException(
                f"Invalid regular expression: {e}", {"pattern": pattern_text}
            ) from e

        max_matches = self.int_attr("max", scraper, context)
        if max_matches is not None and max_matches <= 0:
            max_matches = None
        replace = self.is_attr_true("replace", scraper, context)
        sources = self.execute_body(scraper, context, source_def).to_list()
        if scraper.is_stopped:
            return EMPTY

        results: list[Variable] = []
        for source in sources:
            text = source.to_string(scraper.charset)
            if replace:
                results.append(
                    create_variable(
                        self._replace(
                            pattern, text, max_matches, result_def,
                            scraper, context,
                        )
                    )
                )
                if scraper.is_stopped:
                    return EMPTY
                continue
            for count, match in enumerate(pattern.finditer(text), 1):
                if max_matches is not None and count > max_matches:
                    break
                results.append(
                    self._match_result(match, result_def, scraper, context)
                )
                if scraper.is_stopped:
                    return EMPTY
        return create_variable(results)

    def _match_result(
        self,
        match: re.Match[str],
        result_def: ElementDef | None,
        scraper: Scraper,
        context: ScopeContext,
    ) -> Variable:
        if result_def is None:
            return create_variable(match.group(0))
        with context.scope():
            for index, group in enumerate(match.groups(""), 1):
                context.set_local_var(f"_{index}", group)
            for name, group in match.groupdict("").items():
                context.set_local_var(name, group)
            context.set_local_var("_0", match.group(0))
            return self.execute_body(scraper, context, result_def)

    def _replace(
        self,
        pattern: re.Pattern[str],
        text: str,
        max_matches: int | None,
        result_def: ElementDef | None,
        scraper: Scraper,
        context: ScopeContext,
    ) -> str:
        def substitute(match: re.Match[str]) -> str:
            if result_def is None:
                return ""
            return self._match_result(
                match, result_def, scraper, context
            ).to_string(scraper.charset)

        return pattern.sub(substitute, text, count=max_matches or 0)


DEFAULT_DELIMITERS = "\n\r\t"


@processor("tokenize", attributes=("delimiters", "trimall", "allowemptyitems"))
class TokenizeProcessor(BaseProcessor):
    """Split the body's text at any of the delimiter characters.

    Items are trimmed unless ``trimall="false"``; blank items are dropped
    unless ``allowemptyitems="true"``.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        delimiters = self.evaluate_attr(
            "delimiters", scraper, context, DEFAULT_DELIMITERS
        )
        trim = self.is_attr_true("trimall", scraper, context, default=True)
        allow_empty = self.is_attr_true("allowemptyitems", scraper, context)

        text = self.body_to_string(scraper, context)
        if scraper.is_stopped:
            return EMPTY
        if delimiters:
            tokens = re.split(f"[{re.escape(delimiters)}]", text)
        else:
            tokens = [text]
        if trim:
            tokens = [token.strip() for token in tokens]

        if allow_empty:
            return ListVariable(NodeVariable(token) for token in tokens)
        return create_variable([token for token in tokens if token.strip()])
