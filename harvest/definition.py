"""Configuration loading.

A configuration is an XML document whose root element (``<config>``) holds
processor elements::

    <config charset="UTF-8" scriptlang="python">
        <def var="page">
            <http url="https://example.com/"/>
        </def>
        <def var="title">
            <xpath expression="//title/text()">
                <html-to-xml><get var="page"/></html-to-xml>
            </xpath>
        </def>
    </config>

The loader turns the document into an immutable ``ElementDef`` tree and
validates it against the processor registry, so that unknown tags, bad
attributes and malformed templates are reported before anything runs.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from lxml import etree

from harvest.exceptions import ConfigurationException

logger = logging.getLogger(__name__)

TEXT_TAG = "#text"
ROOT_TAG = "config"


@dataclass(frozen=True, eq=False)
class ElementDef:
    """One node of the configuration tree.

    Attributes:
        tag: Local tag name, or ``#text`` for text nodes.
        namespace: Namespace URI of the tag, None when unqualified.
        attributes: Read-only attribute mapping.
        children: Child definitions in document order.
        text: The text of a ``#text`` node.
        line: Source line in the configuration file.
    """

    tag: str
    namespace: str | None = None
    attributes: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    children: tuple[ElementDef, ...] = ()
    text: str | None = None
    line: int | None = None

    @property
    def is_text(self) -> bool:
        return self.tag == TEXT_TAG

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.attributes

    def child(self, tag: str) -> ElementDef | None:
        """Return the first element child with the given tag, if any."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def children_by_tag(self, tag: str) -> list[ElementDef]:
        return [child for child in self.children if child.tag == tag]

    def __repr__(self) -> str:
        if self.is_text:
            return f"ElementDef(#text {self.text!r})"
        return f"ElementDef(<{self.tag}> line {self.line})"


@dataclass(frozen=True)
class ScraperConfiguration:
    """A loaded and validated configuration.

    Attributes:
        root: The ``<config>`` element definition.
        charset: Charset requested by the configuration, if any.
        script_language: Default script language requested, if any.
        source: Path the configuration was read from, if any.
    """

    root: ElementDef
    charset: str | None = None
    script_language: str | None = None
    source: Path | None = None


def _build_element(element: etree._Element) -> ElementDef:
    qname = etree.QName(element)
    children: list[ElementDef] = []

    if element.text and element.text.strip():
        children.append(
            ElementDef(TEXT_TAG, text=element.text, line=element.sourceline)
        )
    for child in element:
        if isinstance(child.tag, str):
            children.append(_build_element(child))
        if child.tail and child.tail.strip():
            children.append(
                ElementDef(TEXT_TAG, text=child.tail, line=child.sourceline)
            )

    attributes = {
        etree.QName(name).localname: value
        for name, value in element.attrib.items()
    }
    return ElementDef(
        tag=qname.localname,
        namespace=qname.namespace,
        attributes=MappingProxyType(attributes),
        children=tuple(children),
        line=element.sourceline,
    )


def parse_config(
    text: str | bytes,
    source: Path | None = None,
    validate: bool = True,
) -> ScraperConfiguration:
    """Parse configuration XML into a ``ScraperConfiguration``.

    Args:
        text: The configuration document.
        source: Where the document came from, for error messages.
        validate: Check the tree against the processor registry.

    Returns:
        The parsed configuration.

    Raises:
        ConfigurationException: If the XML is malformed or fails validation.
    """
    parser = etree.XMLParser(
        remove_comments=True,
        remove_pis=True,
        resolve_entities=False,
        no_network=True,
    )
    data = text.encode("utf-8") if isinstance(text, str) else text
    try:
        document = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise ConfigurationException(
            f"Malformed configuration XML: {e}",
            {"source": source} if source else None,
        ) from e

    root = _build_element(document)
    if root.tag != ROOT_TAG:
        raise ConfigurationException(
            f"Root element must be <{ROOT_TAG}>, found <{root.tag}>"
        )

    if validate:
        from harvest.processors.registry import registry

        registry.validate_children(root)

    logger.debug(
        f"Loaded configuration {source or '<string>'} "
        f"with {len(root.children)} top-level processors"
    )
    return ScraperConfiguration(
        root=root,
        charset=root.get("charset"),
        script_language=root.get("scriptlang"),
        source=source,
    )


def load_config(path: str | Path) -> ScraperConfiguration:
    """Read and parse a configuration file.

    Raises:
        ConfigurationException: If the file cannot be read or is invalid.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ConfigurationException(
            f"Cannot read configuration: {e}", {"source": path}
        ) from e
    return parse_config(data, source=path)
