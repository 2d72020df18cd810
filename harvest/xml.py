"""lxml helpers for markup parsing, XPath evaluation and serialization.

The engine never walks markup itself: HTML cleanup, XML parsing and XPath
evaluation are delegated to lxml. This module only adapts lxml results to
what the processors need.
"""

from __future__ import annotations

import logging
from typing import Any

from lxml import etree, html

from harvest.exceptions import ConfigurationException, HarvestException

logger = logging.getLogger(__name__)

XHTML_NAMESPACE_DECLARATION = ' xmlns="http://www.w3.org/1999/xhtml"'


def is_node(value: Any) -> bool:
    """Return True if value is an lxml element or element tree."""
    return isinstance(value, (etree._Element, etree._ElementTree))


def serialize_item(item: Any) -> str:
    """Serialize one XPath result item to text.

    Elements and documents are serialized as XML markup (without the default
    XHTML namespace declaration lxml adds for parsed XHTML); text results,
    attributes and atomic values use their string value.

    Args:
        item: An lxml element, element tree, or atomic XPath result.

    Returns:
        The textual form of the item.
    """
    if isinstance(item, etree._ElementTree):
        item = item.getroot()
    if isinstance(item, etree._Element):
        if not isinstance(item.tag, str):
            # comments and processing instructions
            return item.text or ""
        markup = etree.tostring(item, encoding="unicode", with_tail=False)
        return markup.replace(XHTML_NAMESPACE_DECLARATION, "")
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, float) and item.is_integer():
        return str(int(item))
    return str(item)


def html_to_xml(markup: str) -> str:
    """Convert possibly malformed HTML to well-formed XML.

    Args:
        markup: HTML source text.

    Returns:
        Serialized XML for the whole document.
    """
    if not markup.strip():
        return ""
    document = html.document_fromstring(markup)
    return etree.tostring(document, encoding="unicode", method="xml")


def parse_xml(markup: str) -> etree._Element:
    """Parse XML text, falling back to the HTML parser for tag soup.

    Args:
        markup: XML (or HTML) source text.

    Returns:
        Root element of the parsed document.

    Raises:
        HarvestException: If the text cannot be parsed at all.
    """
    try:
        return etree.fromstring(markup.strip().encode("utf-8"))
    except etree.XMLSyntaxError:
        logger.debug("XML parse failed, retrying with the HTML parser")
    try:
        return html.document_fromstring(markup)
    except (etree.ParserError, ValueError) as e:
        raise HarvestException(f"Cannot parse markup: {e}") from e


def evaluate_xpath(
    root: etree._Element,
    expression: str,
    variables: dict[str, str] | None = None,
) -> list[Any]:
    """Evaluate an XPath expression and return its results as a list.

    Args:
        root: Element to evaluate against.
        expression: XPath 1.0 expression.
        variables: Values for ``$name`` references in the expression.

    Returns:
        Ordered list of result items. Atomic results (numbers, booleans,
        strings) are returned as a one-item list.

    Raises:
        ConfigurationException: If the expression does not compile.
    """
    try:
        compiled = etree.XPath(expression)
    except etree.XPathSyntaxError as e:
        raise ConfigurationException(
            f"Invalid XPath expression: {e}", {"expression": expression}
        ) from e

    result = compiled(root, **(variables or {}))
    if isinstance(result, list):
        return result
    return [result]
