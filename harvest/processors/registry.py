"""Registry mapping configuration tags to processor classes.

Processors register themselves with the ``@processor`` decorator, which also
records the attributes and structural children each tag accepts. The loader
uses that metadata to validate configurations before they run.

Example::

    @processor("exit", attributes=("condition", "message"))
    class ExitProcessor(BaseProcessor):
        ...

Core processors are registered for unqualified tags and for tags in
``CORE_NAMESPACE``. Extensions can register under their own namespace.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, TypeVar

from harvest.definition import ElementDef
from harvest.exceptions import ConfigurationException
from harvest.templater import parse_template

if TYPE_CHECKING:
    from harvest.processors.base import BaseProcessor

logger = logging.getLogger(__name__)

CORE_NAMESPACE = "urn:harvest:core"
CORE_NAMESPACES: tuple[str | None, ...] = (None, CORE_NAMESPACE)

# accepted on every processor
COMMON_ATTRIBUTES = frozenset({"id"})

P = TypeVar("P", bound="type[BaseProcessor]")


@dataclass(frozen=True)
class ProcessorInfo:
    """Registration metadata for one processor tag.

    Attributes:
        tag: The tag name.
        processor_class: Class instantiated for each element with this tag.
        attributes: Accepted attribute names.
        required: Attribute names that must be present.
        structural: Child tags that are part of this processor's syntax
            (``<list>`` and ``<body>`` of a loop, for example), mapped to the
            attributes they accept. Their children are processors.
        templated_body: Whether body text is template source.
    """

    tag: str
    processor_class: type[BaseProcessor]
    attributes: frozenset[str] = frozenset()
    required: frozenset[str] = frozenset()
    structural: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    templated_body: bool = False


class ProcessorRegistry:
    """Maps ``(namespace, tag)`` to processor metadata."""

    def __init__(self) -> None:
        self._processors: dict[tuple[str | None, str], ProcessorInfo] = {}

    def register(
        self,
        info: ProcessorInfo,
        namespaces: Iterable[str | None] = CORE_NAMESPACES,
    ) -> None:
        for namespace in namespaces:
            key = (namespace, info.tag)
            if key in self._processors:
                logger.warning(
                    f"Replacing processor for <{info.tag}> "
                    f"in namespace {namespace!r}"
                )
            self._processors[key] = info

    def lookup(self, namespace: str | None, tag: str) -> ProcessorInfo | None:
        return self._processors.get((namespace, tag))

    def tags(self) -> list[tuple[str | None, str]]:
        return sorted(
            self._processors, key=lambda key: (key[0] or "", key[1])
        )

    def create(self, element_def: ElementDef) -> BaseProcessor:
        """Instantiate the processor for a definition.

        Raises:
            ConfigurationException: If no processor is registered for the tag.
        """
        info = self.lookup(element_def.namespace, element_def.tag)
        if info is None:
            raise ConfigurationException(
                f"Unknown processor <{element_def.tag}>",
                {"namespace": element_def.namespace, "line": element_def.line},
            )
        return info.processor_class(element_def)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_children(self, element_def: ElementDef) -> None:
        """Validate every child of a definition as a processor."""
        for child in element_def.children:
            self.validate(child)

    def validate(self, element_def: ElementDef) -> None:
        """Validate a processor definition and everything beneath it.

        Raises:
            ConfigurationException: For unknown tags, unknown or missing
                attributes, and unbalanced templates.
        """
        info = self.lookup(element_def.namespace, element_def.tag)
        if info is None:
            raise ConfigurationException(
                f"Unknown processor <{element_def.tag}>",
                {"namespace": element_def.namespace, "line": element_def.line},
            )
        if element_def.is_text:
            return

        self._check_attributes(
            element_def, info.attributes | COMMON_ATTRIBUTES, info.required
        )

        for child in element_def.children:
            allowed = info.structural.get(child.tag)
            if allowed is not None and not child.is_text:
                self._check_attributes(child, allowed, frozenset())
                self._validate_body(child, info.templated_body)
            elif info.templated_body and child.is_text:
                parse_template(child.text or "")
            else:
                self.validate(child)

    def _validate_body(self, element_def: ElementDef, templated: bool) -> None:
        for child in element_def.children:
            if templated and child.is_text:
                parse_template(child.text or "")
            else:
                self.validate(child)

    @staticmethod
    def _check_attributes(
        element_def: ElementDef,
        allowed: frozenset[str],
        required: frozenset[str],
    ) -> None:
        unknown = set(element_def.attributes) - allowed
        if unknown:
            raise ConfigurationException(
                f"Invalid attribute(s) on <{element_def.tag}>: "
                f"{', '.join(sorted(unknown))}",
                {"line": element_def.line, "allowed": ", ".join(sorted(allowed))},
            )
        missing = required - set(element_def.attributes)
        if missing:
            raise ConfigurationException(
                f"Missing required attribute(s) on <{element_def.tag}>: "
                f"{', '.join(sorted(missing))}",
                {"line": element_def.line},
            )
        for value in element_def.attributes.values():
            parse_template(value)


registry = ProcessorRegistry()


def processor(
    tag: str,
    *,
    aliases: Iterable[str] = (),
    attributes: Iterable[str] = (),
    required: Iterable[str] = (),
    structural: Mapping[str, Iterable[str]] | None = None,
    templated_body: bool = False,
    namespaces: Iterable[str | None] = CORE_NAMESPACES,
    target: ProcessorRegistry | None = None,
) -> Callable[[P], P]:
    """Class decorator registering a processor for a tag.

    Args:
        tag: Tag name handled by the class.
        aliases: Further tag names handled by the same class.
        attributes: Accepted attributes (``id`` is always accepted).
        required: Attributes that must be present.
        structural: Structural child tags and the attributes they accept.
        templated_body: Treat body text as template source when validating.
        namespaces: Namespaces to register under.
        target: Registry to use; defaults to the module-level registry.
    """
    namespaces = tuple(namespaces)
    required_set = frozenset(required)
    attribute_set = frozenset(attributes) | required_set
    structural_map = MappingProxyType(
        {name: frozenset(attrs) for name, attrs in (structural or {}).items()}
    )

    def decorator(cls: P) -> P:
        for name in (tag, *aliases):
            info = ProcessorInfo(
                tag=name,
                processor_class=cls,
                attributes=attribute_set,
                required=required_set,
                structural=structural_map,
                templated_body=templated_body,
            )
            (target or registry).register(info, namespaces)
        return cls

    return decorator
