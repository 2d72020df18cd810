"""Scraper: one execution of a configuration.

A ``Scraper`` owns everything mutable about a run: the scope context, the
HTTP client, user-defined functions and the run status. Configurations,
the processor registry and compiled templates are shared read-only, so
independent scrapers can run in separate threads.

Example usage::

    configuration = load_config("books.xml")
    result = Scraper(configuration).execute()
    if result.status is ScraperStatus.EXIT:
        print(result.message)
    print(result.variables["title"])
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from harvest.context import ScopeContext
from harvest.definition import ElementDef, ScraperConfiguration
from harvest.exceptions import ConfigurationException, HarvestException
from harvest.http import HttpClient
from harvest.processors.base import CallFrame, HttpRequestBuilder
from harvest.processors.registry import ProcessorRegistry, registry
from harvest.scripting import ScriptEngine, ScriptEngineFactory
from harvest.settings import ScraperSettings
from harvest.variables import EMPTY, Variable

logger = logging.getLogger(__name__)


class ScraperStatus(Enum):
    """Lifecycle of a scraper run.

    Values:
        READY: Created, not started.
        RUNNING: Executing processors.
        FINISHED: Every processor ran.
        EXIT: Stopped early by an ``<exit>`` processor. Not a failure.
        ERROR: Aborted by an exception.
    """

    READY = "ready"
    RUNNING = "running"
    FINISHED = "finished"
    EXIT = "exit"
    ERROR = "error"


@dataclass
class ScraperResult:
    """Outcome of a successful (or intentionally stopped) run.

    Attributes:
        status: ``FINISHED`` or ``EXIT``.
        message: The exit message when status is ``EXIT``.
        variables: Snapshot of the global scope at the end of the run.
    """

    status: ScraperStatus
    message: str | None = None
    variables: dict[str, Variable] = field(default_factory=dict)

    @property
    def exited(self) -> bool:
        return self.status is ScraperStatus.EXIT


class Scraper:
    """Executes a configuration.

    Attributes:
        configuration: The configuration being run.
        settings: Effective settings (configuration overrides applied).
        context: The scope context of this run.
        status: Current ScraperStatus.
        exit_message: Message given to ``<exit>``, if the run stopped early.
    """

    def __init__(
        self,
        configuration: ScraperConfiguration,
        settings: ScraperSettings | None = None,
        http_client: HttpClient | None = None,
        processor_registry: ProcessorRegistry | None = None,
        run_logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the scraper.

        Args:
            configuration: Loaded configuration.
            settings: Run settings; defaults to ``ScraperSettings()``.
            http_client: HTTP client to use. When None, the scraper creates
                one per run from the settings and closes it afterwards.
            processor_registry: Registry for tag dispatch.
            run_logger: Logger for run events; defaults to this module's.
        """
        self.configuration = configuration
        settings = settings or ScraperSettings()
        overrides: dict[str, Any] = {}
        if configuration.charset:
            overrides["charset"] = configuration.charset
        if configuration.script_language:
            overrides["script_language"] = configuration.script_language
        self.settings = settings
        if overrides:
            try:
                self.settings = ScraperSettings.model_validate(
                    {**settings.model_dump(), **overrides}
                )
            except ValidationError as e:
                raise ConfigurationException(
                    "Invalid configuration settings",
                    {"source": configuration.source},
                ) from e
        self.registry = processor_registry or registry
        self.logger = run_logger or logger
        self.script_engine_factory = ScriptEngineFactory(
            self.settings.script_language
        )

        self.context = ScopeContext()
        self.status = ScraperStatus.READY
        self.exit_message: str | None = None
        self.depth = 0
        self.functions: dict[str, ElementDef] = {}
        self.call_stack: list[CallFrame] = []
        self.http_stack: list[HttpRequestBuilder] = []

        self._http_client = http_client
        self._owns_http_client = False

    @property
    def charset(self) -> str:
        return self.settings.charset

    @property
    def is_stopped(self) -> bool:
        return self.status is ScraperStatus.EXIT

    @property
    def http_client(self) -> HttpClient:
        if self._http_client is None:
            self._http_client = HttpClient(
                timeout=self.settings.http_timeout,
                user_agent=self.settings.user_agent,
            )
            self._owns_http_client = True
        return self._http_client

    def script_engine(self, language: str | None = None) -> ScriptEngine:
        return self.script_engine_factory.get_engine(language)

    def exit_execution(self, message: str) -> None:
        """Signal early termination of the whole run.

        Every body, loop and call checks ``is_stopped`` after each step and
        unwinds; scopes are released on the way out.
        """
        self.exit_message = message
        self.status = ScraperStatus.EXIT

    def run_processor(
        self, element_def: ElementDef, context: ScopeContext
    ) -> Variable:
        if self.is_stopped:
            return EMPTY
        return self.registry.create(element_def).run(self, context)

    @contextmanager
    def nested(self) -> Generator[int, None, None]:
        """Track processor nesting depth for log indentation."""
        self.depth += 1
        try:
            yield self.depth
        finally:
            self.depth -= 1

    def execute(self, variables: dict[str, Any] | None = None) -> ScraperResult:
        """Run the configuration from start to end.

        Args:
            variables: Initial values for the global scope.

        Returns:
            ScraperResult with status ``FINISHED`` or ``EXIT``.

        Raises:
            HarvestException: If any processor fails. The status is set to
                ``ERROR`` and the context is torn down first.
        """
        source = self.configuration.source or "<string>"
        self.context = ScopeContext(variables)
        self.status = ScraperStatus.RUNNING
        self.exit_message = None
        self.functions = {}
        self.logger.info(f"Starting scraper for {source}")

        try:
            for child in self.configuration.root.children:
                self.run_processor(child, self.context)
                if self.is_stopped:
                    break
        except HarvestException as e:
            self.status = ScraperStatus.ERROR
            self.logger.error(f"Scraper for {source} failed: {e.message}")
            self._teardown()
            raise

        if self.is_stopped:
            self.logger.info(f"Scraper for {source} exited: {self.exit_message}")
        else:
            self.status = ScraperStatus.FINISHED
            self.logger.info(f"Scraper for {source} finished")

        result = ScraperResult(
            status=self.status,
            message=self.exit_message,
            variables=self.context.global_variables(),
        )
        self._teardown()
        return result

    def _teardown(self) -> None:
        self.context.clear()
        self.call_stack.clear()
        self.http_stack.clear()
        if self._owns_http_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None
            self._owns_http_client = False
