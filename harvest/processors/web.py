"""Web processors: fetching pages and cleaning HTML.

``<http>`` collects ``<http-param>`` and ``<http-header>`` values from its
body, then performs a blocking fetch. After the fetch the response object is
bound to the ``http`` variable so that later expressions can inspect it::

    <http url="${base}/search" method="post">
        <http-param name="q">harvest</http-param>
        <http-header name="Referer">${base}</http-header>
    </http>
    <exit condition="${http.status_code != 200}" message="Search failed"/>
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from harvest.context import ScopeContext
from harvest.exceptions import HarvestException
from harvest.processors.base import BaseProcessor, HttpRequestBuilder
from harvest.processors.registry import processor
from harvest.variables import (
    EMPTY,
    BinaryVariable,
    Variable,
    create_variable,
)
from harvest.xml import html_to_xml

if TYPE_CHECKING:
    from harvest.scraper import Scraper

HTTP_VARIABLE = "http"


@processor("http", required=("url",), attributes=("method", "charset"))
class HttpProcessor(BaseProcessor):
    """Fetch a URL and return its body.

    Text responses become a node with the decoded text; anything else is
    returned as binary.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        url = self.evaluate_attr("url", scraper, context).strip()
        method = self.evaluate_attr("method", scraper, context, "GET")
        charset = self.evaluate_attr("charset", scraper, context) or None

        builder = HttpRequestBuilder()
        scraper.http_stack.append(builder)
        try:
            self.execute_body(scraper, context)
        finally:
            scraper.http_stack.pop()
        if scraper.is_stopped:
            return EMPTY

        response = scraper.http_client.fetch(
            url,
            method=method.strip() or "GET",
            params=builder.params,
            headers=builder.headers,
            charset=charset,
        )
        scraper.logger.info(
            f"Fetched {response.url}: HTTP {response.status_code}, "
            f"{len(response.content)} bytes"
        )
        context.set_local_var(HTTP_VARIABLE, response)

        if response.is_text:
            return create_variable(response.text)
        return BinaryVariable(response.content) if response.content else EMPTY


def _running_request(scraper: Scraper, tag: str) -> HttpRequestBuilder:
    if not scraper.http_stack:
        raise HarvestException(f"<{tag}> must be used inside <http>")
    return scraper.http_stack[-1]


@processor("http-param", required=("name",))
class HttpParamProcessor(BaseProcessor):
    """Add a form parameter to the enclosing ``<http>``.

    A list body adds one parameter per item under the same name.
    """

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        builder = _running_request(scraper, self.tag)
        name = self.evaluate_attr("name", scraper, context)
        value = self.execute_body(scraper, context)
        items = value.to_list() or [EMPTY]
        for item in items:
            builder.params.append((name, item.to_string(scraper.charset)))
        return EMPTY


@processor("http-header", required=("name",))
class HttpHeaderProcessor(BaseProcessor):
    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        builder = _running_request(scraper, self.tag)
        name = self.evaluate_attr("name", scraper, context)
        builder.headers[name] = self.body_to_string(scraper, context).strip()
        return EMPTY


@processor("html-to-xml")
class HtmlToXmlProcessor(BaseProcessor):
    """Turn the body's HTML into well-formed XML for ``<xpath>``."""

    def execute(self, scraper: Scraper, context: ScopeContext) -> Variable:
        markup = self.body_to_string(scraper, context)
        if scraper.is_stopped:
            return EMPTY
        return create_variable(html_to_xml(markup))
