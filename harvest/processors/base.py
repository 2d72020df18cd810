"""Base class for processors.

Each configuration element is executed by a processor: a small object built
from the element's ``ElementDef`` that implements
``execute(scraper, context) -> Variable``. Processors are created fresh for
every execution and hold no state beyond their definition.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.definition import ElementDef
from harvest.exceptions import ProcessorException
from harvest.templater import evaluate_to_string, evaluate_to_variable
from harvest.variables import (
    EMPTY,
    Variable,
    create_variable,
    is_boolean_true,
)

if TYPE_CHECKING:
    from harvest.scraper import Scraper


@dataclass
class CallFrame:
    """A running user function call; ``<return>`` stores into it."""

    name: str
    result: Variable | None = None


@dataclass
class HttpRequestBuilder:
    """Parameters and headers collected for a running ``<http>``."""

    params: list[tuple[str, str]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)


class BaseProcessor(ABC):
    """One executable step of a configuration.

    Subclasses implement ``execute``. Callers use ``run``, which adds the
    behavior shared by every processor:

    - nothing runs once the scraper has been stopped by ``<exit>``, and a
      processor stopped while running yields ``EMPTY`` and binds no ``id``
    - debug logging indented by nesting depth
    - the result is bound to the ``id`` attribute, when present
    - failures are wrapped in ``ProcessorException`` naming this processor
    """

    def __init__(self, element_def: ElementDef) -> None:
        self.element_def = element_def

    @property
    def tag(self) -> str:
        return self.element_def.tag

    @abstractmethod
    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        """Execute this processor and return its result."""

    def run(self, scraper: Scraper, context: ScopeContext) -> Variable:
        if scraper.is_stopped:
            return EMPTY

        with scraper.nested() as depth:
            indent = "    " * (depth - 1)
            scraper.logger.debug(
                f"{indent}<{self.tag}> line {self.element_def.line}"
            )
            try:
                result = self.execute(scraper, context)
            except ProcessorException:
                raise
            except Exception as e:
                raise ProcessorException(
                    self.tag, self.element_def.line, e
                ) from e

        if scraper.is_stopped:
            return EMPTY

        processor_id = self.element_def.get("id")
        if processor_id:
            context.set_local_var(
                self.evaluate_attr("id", scraper, context), result
            )
        return result

    # =========================================================================
    # Attribute helpers
    # =========================================================================

    def evaluate_attr(
        self,
        name: str,
        scraper: Scraper,
        context: ScopeContext,
        default: str | None = None,
    ) -> str:
        """Evaluate an attribute as a template and return its text.

        Args:
            name: Attribute name.
            scraper: The running scraper.
            context: Scope for placeholder resolution.
            default: Text returned when the attribute is absent.
        """
        value = self.element_def.get(name)
        if value is None:
            return default if default is not None else ""
        return evaluate_to_string(value, context, scraper.script_engine())

    def evaluate_attr_variable(
        self, name: str, scraper: Scraper, context: ScopeContext
    ) -> Variable:
        return evaluate_to_variable(
            self.element_def.get(name), context, scraper.script_engine()
        )

    def is_attr_true(
        self,
        name: str,
        scraper: Scraper,
        context: ScopeContext,
        default: bool = False,
    ) -> bool:
        value = self.evaluate_attr(name, scraper, context).strip()
        if not value:
            return default
        return is_boolean_true(value)

    def int_attr(
        self,
        name: str,
        scraper: Scraper,
        context: ScopeContext,
        default: int | None = None,
    ) -> int | None:
        value = self.evaluate_attr(name, scraper, context).strip()
        if not value:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    # =========================================================================
    # Body helpers
    # =========================================================================

    def execute_body(
        self,
        scraper: Scraper,
        context: ScopeContext,
        element_def: ElementDef | None = None,
    ) -> Variable:
        """Run the children of a definition in order.

        Stops as soon as the scraper is stopped. A single child yields its
        own result; several children yield a list of their results.

        Args:
            scraper: The running scraper.
            context: Scope to run the children in.
            element_def: Definition whose children to run; defaults to this
                processor's own definition.
        """
        children = (element_def or self.element_def).children
        if len(children) == 1:
            return scraper.run_processor(children[0], context)

        results: list[Variable] = []
        for child in children:
            results.append(scraper.run_processor(child, context))
            if scraper.is_stopped:
                break
        return create_variable(results)

    def body_to_string(
        self,
        scraper: Scraper,
        context: ScopeContext,
        element_def: ElementDef | None = None,
    ) -> str:
        return self.execute_body(scraper, context, element_def).to_string(
            scraper.charset
        )
