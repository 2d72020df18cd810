"""Exception types for harvest errors.

This module defines the exception hierarchy raised while loading and running
a scraper configuration. Absence of a variable is never an error (lookups
return ``EMPTY``), and early termination via ``<exit>`` is a scraper status,
not an exception.
"""

from __future__ import annotations

from typing import Any


class HarvestException(Exception):
    """Base class for all harvest errors.

    Subclasses provide specific context about what went wrong. The context
    dict is rendered below the message so that the CLI can show the full
    picture without a traceback.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            context: Optional dict of additional context (tag, line, url...).
        """
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


# =============================================================================
# Definition-time errors
# =============================================================================


class ConfigurationException(HarvestException):
    """Raised when a configuration is malformed.

    Covers invalid XML, unknown processor tags, unknown or missing attributes
    and structural children placed under the wrong parent. These are raised
    by the loader before any processor executes.
    """


class TemplateSyntaxError(ConfigurationException):
    """Raised when a template has unbalanced ``${...}`` delimiters.

    Attributes:
        template: The template text that failed to parse.
        position: Offset of the placeholder that was never closed.
    """

    def __init__(self, template: str, position: int) -> None:
        self.template = template
        self.position = position
        super().__init__(
            f"Unterminated placeholder at offset {position}",
            {"template": template},
        )


# =============================================================================
# Runtime errors
# =============================================================================


class ScopeException(HarvestException):
    """Raised when scope push/pop calls are not balanced."""


class ScriptException(HarvestException):
    """Raised when a scripting engine fails to evaluate an expression.

    Attributes:
        expression: The source text that was evaluated.
        language: The scripting language used.
        cause: The underlying exception raised by the engine.
    """

    def __init__(
        self, expression: str, language: str, cause: BaseException
    ) -> None:
        self.expression = expression
        self.language = language
        self.cause = cause
        super().__init__(
            f"Error evaluating {language} script: "
            f"{type(cause).__name__}: {cause}",
            {"expression": expression},
        )


class FetchException(HarvestException):
    """Raised when an HTTP fetch fails.

    There is no automatic retry: the error propagates up through the
    processor stack and aborts the run.

    Attributes:
        url: The URL being fetched.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(
        self,
        url: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        context: dict[str, Any] = {"url": url}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(f"Fetch failed: {reason}", context)


class ProcessorException(HarvestException):
    """Raised when a processor fails during execution.

    Wraps whatever went wrong inside a processor with the identity of that
    processor, so that the innermost failing tag and its source line are
    reported. The original exception is available as ``__cause__``.

    Attributes:
        tag: Tag name of the failing processor.
        line: Source line of the processor in the configuration, if known.
    """

    def __init__(
        self,
        tag: str,
        line: int | None,
        cause: BaseException,
    ) -> None:
        self.tag = tag
        self.line = line
        context: dict[str, Any] = {"processor": tag}
        if line is not None:
            context["line"] = line
        if isinstance(cause, HarvestException):
            reason = cause.message
            context.update(cause.context)
        else:
            reason = f"{type(cause).__name__}: {cause}"
        super().__init__(f"Processor <{tag}> failed: {reason}", context)
