"""Scripting backends for template expressions and ``<script>`` processors.

A scripting engine evaluates source text in a given language against a
name to value environment. Only Python is registered by default; other
languages can be plugged in with ``register_script_engine``.

Scripts run with full interpreter privileges: configurations are trusted
input and no sandboxing is attempted.
"""

from __future__ import annotations

import logging
import textwrap
from abc import ABC, abstractmethod
from functools import lru_cache
from types import CodeType
from typing import Any

from harvest.exceptions import ConfigurationException, ScriptException

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_LANGUAGE = "python"


class ScriptEngine(ABC):
    """Evaluates source text in one scripting language."""

    language: str = ""

    @abstractmethod
    def evaluate(self, source: str, environment: dict[str, Any]) -> Any:
        """Evaluate an expression and return its value.

        Args:
            source: Expression source text.
            environment: Names visible to the expression.

        Raises:
            ScriptException: If evaluation fails.
        """

    @abstractmethod
    def execute(
        self, source: str, environment: dict[str, Any]
    ) -> dict[str, Any]:
        """Run a block of statements.

        Args:
            source: Statement source text.
            environment: Names visible to the script. Not modified.

        Returns:
            The names defined or rebound by the script.

        Raises:
            ScriptException: If execution fails.
        """


@lru_cache(maxsize=512)
def _compile(source: str, mode: str) -> CodeType:
    return compile(source, f"<harvest {mode}>", mode)


class PythonScriptEngine(ScriptEngine):
    """Evaluates Python expressions and statement blocks."""

    language = "python"

    def evaluate(self, source: str, environment: dict[str, Any]) -> Any:
        namespace: dict[str, Any] = {"__builtins__": __builtins__}
        namespace.update(environment)
        try:
            code = _compile(source.strip(), "eval")
            return eval(code, namespace)
        except Exception as e:
            raise ScriptException(source, self.language, e) from e

    def execute(
        self, source: str, environment: dict[str, Any]
    ) -> dict[str, Any]:
        namespace: dict[str, Any] = {"__builtins__": __builtins__}
        namespace.update(environment)
        try:
            code = _compile(textwrap.dedent(source).strip("\n"), "exec")
            exec(code, namespace)
        except Exception as e:
            raise ScriptException(source, self.language, e) from e

        return {
            name: value
            for name, value in namespace.items()
            if not name.startswith("_")
            and (
                name not in environment or environment[name] is not value
            )
        }


_ENGINES: dict[str, type[ScriptEngine]] = {
    PythonScriptEngine.language: PythonScriptEngine,
}


def register_script_engine(language: str, engine: type[ScriptEngine]) -> None:
    """Make a scripting language available to configurations."""
    _ENGINES[language.lower()] = engine


def available_languages() -> list[str]:
    return sorted(_ENGINES)


class ScriptEngineFactory:
    """Hands out one engine instance per language for a scraper run.

    Attributes:
        default_language: Language used when a processor does not name one.
    """

    def __init__(self, default_language: str = DEFAULT_SCRIPT_LANGUAGE) -> None:
        self.default_language = default_language.lower()
        self._engines: dict[str, ScriptEngine] = {}
        # fail fast on an unknown default
        self.get_engine(self.default_language)

    def get_engine(self, language: str | None = None) -> ScriptEngine:
        """Return the engine for a language.

        Args:
            language: Language name; the default language when None or blank.

        Raises:
            ConfigurationException: If no engine is registered for it.
        """
        name = (language or "").strip().lower() or self.default_language
        engine = self._engines.get(name)
        if engine is None:
            engine_class = _ENGINES.get(name)
            if engine_class is None:
                raise ConfigurationException(
                    f"Unsupported script language '{name}'",
                    {"available": ", ".join(available_languages())},
                )
            engine = engine_class()
            self._engines[name] = engine
            logger.debug(f"Created {name} script engine")
        return engine
