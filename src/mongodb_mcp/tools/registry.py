"""Ordered registry of the tools active in one run."""

import logging
from collections.abc import Iterable, Iterator

from ..exceptions import ConfigurationError, UnknownToolError
from .base_tool import ToolDescriptor

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-unique, registration-ordered set of ToolDescriptors.

    Duplicate names are a configuration error raised at registration, never
    at call time.
    """

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ToolDescriptor) -> None:
        """Add a tool.

        Raises:
            ConfigurationError: If a tool with the same name is registered
        """
        if descriptor.name in self._tools:
            raise ConfigurationError(
                message=f'Duplicate tool name "{descriptor.name}"',
                details={"tool": descriptor.name},
            )
        self._tools[descriptor.name] = descriptor
        logger.debug(f"Registered tool {descriptor.name} ({descriptor.operation_type.value})")

    def resolve(self, name: str) -> ToolDescriptor:
        """Look up a tool by name.

        Raises:
            UnknownToolError: If no active tool has that name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(
                message=f'Tool "{name}" does not exist',
                details={"tool": name},
            ) from None

    def names(self) -> list[str]:
        return list(self._tools)

    def filtered(self, disabled: Iterable[str]) -> "ToolRegistry":
        """A new registry without the disabled tool names, order preserved."""
        disabled = set(disabled)
        unknown = disabled - set(self._tools)
        if unknown:
            logger.warning(f"Ignoring unknown disabled tools: {', '.join(sorted(unknown))}")
        return ToolRegistry(d for d in self._tools.values() if d.name not in disabled)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    # Defined last so the builtin ``list`` stays usable in annotations above
    def list(self) -> list[ToolDescriptor]:
        """All tools, in registration order."""
        return [*self._tools.values()]
