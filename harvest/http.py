"""HTTP fetching for ``<http>`` processors.

``HttpClient`` wraps an ``httpx.Client`` and turns responses into
``HttpResponse`` objects. Fetches are blocking calls from the engine's point
of view; there is no retry at this layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from harvest.exceptions import FetchException

logger = logging.getLogger(__name__)

_TEXT_CONTENT_TYPES = (
    "text/",
    "application/xml",
    "application/xhtml",
    "application/json",
    "application/javascript",
    "application/rss",
    "application/atom",
)


@dataclass(frozen=True)
class HttpResponse:
    """Result of a fetch.

    Scripts can reach it through the ``http`` variable, for example
    ``${http.status_code}`` or ``${http.header('Content-Type')}``.

    Attributes:
        url: Final URL after redirects.
        status_code: HTTP status code.
        headers: Response headers (lower-cased names).
        content: Raw body bytes.
        charset: Charset used to decode ``text``.
    """

    url: str
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    charset: str = "UTF-8"

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def text(self) -> str:
        return self.content.decode(self.charset, errors="replace")

    @property
    def is_text(self) -> bool:
        content_type = self.content_type.split(";")[0].strip().lower()
        if not content_type:
            return True
        return content_type.startswith(_TEXT_CONTENT_TYPES) or (
            content_type.endswith("+xml") or content_type.endswith("+json")
        )

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)


class HttpClient:
    """Blocking HTTP client.

    This class encapsulates:

    - httpx.Client lifecycle
    - Request sending (GET and POST with form parameters)
    - Response transformation

    Example::

        with HttpClient(timeout=30.0) as client:
            response = client.fetch("https://example.com/", "GET")
    """

    def __init__(
        self,
        timeout: float | None = None,
        user_agent: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Request timeout in seconds. None means no timeout.
            user_agent: Optional User-Agent header for every request.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.timeout = timeout
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.Client(
            timeout=timeout,
            headers=headers,
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def fetch(
        self,
        url: str,
        method: str = "GET",
        params: list[tuple[str, str]] | None = None,
        headers: dict[str, str] | None = None,
        charset: str | None = None,
    ) -> HttpResponse:
        """Fetch a URL.

        Args:
            url: Absolute URL.
            method: ``GET`` or ``POST``.
            params: Form parameters; query string for GET, body for POST.
            headers: Extra request headers.
            charset: Charset override for decoding the body. Defaults to the
                charset announced by the server, then UTF-8.

        Returns:
            HttpResponse with the body and metadata.

        Raises:
            FetchException: On transport errors, timeouts, and 5xx responses.
        """
        method = method.upper()
        if method not in ("GET", "POST"):
            raise FetchException(url, f"Unsupported HTTP method {method}")

        logger.debug(f"{method} {url}")
        try:
            if method == "POST":
                form: dict[str, list[str]] = {}
                for name, value in params or []:
                    form.setdefault(name, []).append(value)
                http_response = self._client.request(
                    method, url, headers=headers, data=form
                )
            else:
                http_response = self._client.request(
                    method, url, headers=headers, params=params or None
                )
        except httpx.TimeoutException as e:
            raise FetchException(
                url, f"Request timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise FetchException(url, f"{type(e).__name__}: {e}") from e

        if http_response.status_code >= 500:
            raise FetchException(
                url,
                f"Server returned HTTP {http_response.status_code}",
                status_code=http_response.status_code,
            )

        return HttpResponse(
            url=str(http_response.url),
            status_code=http_response.status_code,
            headers={
                name.lower(): value
                for name, value in http_response.headers.items()
            },
            content=http_response.content,
            charset=charset or http_response.encoding or "UTF-8",
        )
