"""The ``<file>`` processor: reading and writing local files.

Relative paths resolve against ``ScraperSettings.working_dir``. Text files
use the ``charset`` attribute, falling back to the run charset.

Example::

    <file action="write" path="out/${name}.html"><get var="page"/></file>
    <def var="seed"><file path="seed.txt"/></def>
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.exceptions import ConfigurationException, HarvestException
from harvest.processors.base import BaseProcessor
from harvest.processors.registry import processor
from harvest.variables import EMPTY, BinaryVariable, Variable, create_variable

if TYPE_CHECKING:
    from harvest.scraper import Scraper

FILE_ACTIONS = ("read", "write", "append")
FILE_TYPES = ("text", "binary")


@processor("file", required=("path",), attributes=("action", "type", "charset"))
class FileProcessor(BaseProcessor):
    """Read a file, or write/append the body to one.

    Reading returns the file's content. Writing and appending return the
    data written, so ``<file>`` can sit in the middle of a pipeline.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        action = self.evaluate_attr("action", scraper, context, "read")
        action = action.strip().lower()
        file_type = self.evaluate_attr("type", scraper, context, "text")
        file_type = file_type.strip().lower()
        if action not in FILE_ACTIONS:
            raise ConfigurationException(
                f"Invalid file action '{action}'",
                {"allowed": ", ".join(FILE_ACTIONS)},
            )
        if file_type not in FILE_TYPES:
            raise ConfigurationException(
                f"Invalid file type '{file_type}'",
                {"allowed": ", ".join(FILE_TYPES)},
            )
        charset = (
            self.evaluate_attr("charset", scraper, context).strip()
            or scraper.charset
        )
        path = self._resolve_path(
            self.evaluate_attr("path", scraper, context), scraper
        )

        try:
            if action == "read":
                scraper.logger.debug(f"Reading {path}")
                if file_type == "binary":
                    return create_variable(path.read_bytes())
                return create_variable(path.read_text(encoding=charset))

            body = self.execute_body(scraper, context)
            if scraper.is_stopped:
                return EMPTY
            data = (
                body.to_bytes(charset)
                if file_type == "binary"
                else body.to_string(charset).encode(charset)
            )
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("ab" if action == "append" else "wb") as f:
                f.write(data)
            scraper.logger.info(f"Wrote {len(data)} bytes to {path}")
        except OSError as e:
            raise HarvestException(
                f"Cannot {action} file: {e.strerror or e}", {"path": str(path)}
            ) from e

        if file_type == "binary":
            return BinaryVariable(data) if data else EMPTY
        return create_variable(data.decode(charset))

    @staticmethod
    def _resolve_path(raw: str, scraper: Scraper) -> Path:
        raw = raw.strip()
        if not raw:
            raise ConfigurationException("<file> path is empty")
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = scraper.settings.working_dir / path
        return path
