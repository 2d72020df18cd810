"""Run settings.

``ScraperSettings`` collects the knobs for one scraper run. The CLI builds
one from its options; library users construct it directly. The ``charset``
and ``scriptlang`` attributes of a configuration's root element override the
corresponding settings for that configuration.
"""

from __future__ import annotations

import codecs
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from harvest.scripting import DEFAULT_SCRIPT_LANGUAGE
from harvest.variables import DEFAULT_CHARSET

DEFAULT_USER_AGENT = "harvest/0.1"


class ScraperSettings(BaseModel):
    """Settings for a scraper run.

    Attributes:
        charset: Charset for decoding fetched text and reading/writing files.
        script_language: Default language for expressions and scripts.
        http_timeout: HTTP timeout in seconds. None disables the timeout.
        user_agent: User-Agent header sent with every request.
        working_dir: Base directory for relative file paths.
    """

    charset: str = DEFAULT_CHARSET
    script_language: str = DEFAULT_SCRIPT_LANGUAGE
    http_timeout: float | None = Field(default=30.0, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    working_dir: Path = Field(default_factory=Path.cwd)

    @field_validator("script_language")
    @classmethod
    def _normalize_language(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("charset")
    @classmethod
    def _check_charset(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError as e:
            raise ValueError(f"Unknown charset '{value}'") from e
        return value
