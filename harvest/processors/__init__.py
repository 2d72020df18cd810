"""Processors for configuration elements.

Importing this package registers every core processor with the registry in
``harvest.processors.registry``.
"""

from harvest.processors import (  # noqa: F401
    control,
    core,
    extraction,
    files,
    script,
    web,
)
from harvest.processors.base import BaseProcessor

__all__ = ["BaseProcessor"]
