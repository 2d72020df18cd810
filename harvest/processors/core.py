"""Variable and text processors.

- ``#text``: constant text from the configuration
- ``def`` (alias ``var-def``): bind a variable in the current scope
- ``set``: rebind an existing variable wherever it lives
- ``get``: read a variable
- ``template``: evaluate body text as a template
- ``text``: string form of the body
- ``empty``: run the body for its side effects, return nothing
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.definition import TEXT_TAG
from harvest.processors.base import BaseProcessor
from harvest.processors.registry import processor
from harvest.templater import evaluate_to_variable
from harvest.variables import EMPTY, NodeVariable, Variable

if TYPE_CHECKING:
    from harvest.scraper import Scraper


@processor(TEXT_TAG)
class ConstantProcessor(BaseProcessor):
    """Constant text. Not templated; wrap it in ``<template>`` for that."""

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        return NodeVariable(self.element_def.text or "")


@processor(
    "def",
    aliases=("var-def",),
    attributes=("value", "overwrite"),
    required=("var",),
)
class DefProcessor(BaseProcessor):
    """Define a variable in the innermost scope.

    The ``value`` attribute, when present, is the only source of the value
    and the body is never executed. Otherwise the body's result is bound.
    With ``overwrite="false"`` an existing binding is left untouched.

    Example::

        <def var="greeting" value="Hello, ${name}!"/>
        <def var="page"><http url="${url}"/></def>
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        name = self.evaluate_attr("var", scraper, context)

        if not self.is_attr_true("overwrite", scraper, context, default=True):
            if context.contains_var(name):
                return EMPTY

        if self.element_def.has("value"):
            value = self.evaluate_attr_variable("value", scraper, context)
        else:
            value = self.execute_body(scraper, context)
            if scraper.is_stopped:
                return EMPTY

        context.set_local_var(name, value)
        return EMPTY


@processor("set", attributes=("value",), required=("var",))
class SetProcessor(BaseProcessor):
    """Rebind a variable in the scope that already holds it."""

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        name = self.evaluate_attr("var", scraper, context)
        if self.element_def.has("value"):
            value = self.evaluate_attr_variable("value", scraper, context)
        else:
            value = self.execute_body(scraper, context)
            if scraper.is_stopped:
                return EMPTY
        context.replace_existing_var(name, value)
        return EMPTY


@processor("get", required=("var",))
class GetProcessor(BaseProcessor):
    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        return context.get_var(self.evaluate_attr("var", scraper, context))


@processor("template", attributes=("language",), templated_body=True)
class TemplateProcessor(BaseProcessor):
    """Evaluate the body's text as a template.

    A body that is exactly one placeholder yields that placeholder's value
    unchanged, so ``<template>${items}</template>`` returns the list itself.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        language = self.evaluate_attr("language", scraper, context)
        source = self.body_to_string(scraper, context)
        if scraper.is_stopped:
            return EMPTY
        return evaluate_to_variable(
            source, context, scraper.script_engine(language or None)
        )


@processor("text")
class TextProcessor(BaseProcessor):
    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        return NodeVariable(self.body_to_string(scraper, context))


@processor("empty")
class EmptyProcessor(BaseProcessor):
    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        self.execute_body(scraper, context)
        return EMPTY
