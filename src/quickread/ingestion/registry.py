"""Read-only lookup of format adapters by extension or media type."""

from __future__ import annotations

from collections.abc import Iterable
import logging
from pathlib import Path

from quickread.ingestion.adapters.base import FormatAdapter, can_handle, file_extension

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Ordered, immutable collection of format adapters.

    Adapters are consulted in registration order and the first match wins.
    A second adapter with an already registered ``format_name`` is ignored.
    """

    __slots__ = ("_adapters",)

    def __init__(self, adapters: Iterable[FormatAdapter]) -> None:
        ordered: list[FormatAdapter] = []
        seen: set[str] = set()
        for adapter in adapters:
            if not isinstance(adapter, FormatAdapter):
                raise TypeError(f"{adapter!r} does not implement the FormatAdapter protocol")
            if adapter.format_name in seen:
                logger.debug("Ignoring duplicate adapter for %s", adapter.format_name)
                continue
            seen.add(adapter.format_name)
            ordered.append(adapter)
        self._adapters: tuple[FormatAdapter, ...] = tuple(ordered)

    def __iter__(self):
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    @property
    def adapters(self) -> tuple[FormatAdapter, ...]:
        return self._adapters

    def adapter_for(self, path: str | Path, media_type: str | None = None) -> FormatAdapter | None:
        source = Path(path)
        for adapter in self._adapters:
            if can_handle(adapter, source, media_type):
                return adapter
        return None

    def supported_extensions(self) -> list[str]:
        """Every registered extension with a leading dot, in registration order."""

        extensions: list[str] = []
        for adapter in self._adapters:
            for extension in adapter.extensions:
                dotted = f".{extension}"
                if dotted not in extensions:
                    extensions.append(dotted)
        return extensions

    def supported_media_types(self) -> list[str]:
        media_types: list[str] = []
        for adapter in self._adapters:
            for media_type in adapter.media_types:
                if media_type not in media_types:
                    media_types.append(media_type)
        return media_types

    def accept_string(self) -> str:
        """Value for a file picker ``accept`` attribute."""

        return ",".join(self.supported_extensions() + self.supported_media_types())

    def is_extension_supported(self, path_or_extension: str | Path) -> bool:
        value = str(path_or_extension)
        if "." not in value and "/" not in value:
            value = f"file.{value}"
        return self.adapter_for(Path(value)) is not None

    def formats(self) -> list[dict[str, object]]:
        return [
            {
                "name": adapter.format_name,
                "extensions": [f".{extension}" for extension in adapter.extensions],
                "media_types": list(adapter.media_types),
                "supports_preview": adapter.supports_preview,
            }
            for adapter in self._adapters
        ]


def unsupported_message(path: Path, registry: AdapterRegistry) -> str:
    extension = file_extension(path)
    label = f".{extension}" if extension else path.name
    return f"Unsupported file type: {label}\n\nSupported formats: {', '.join(registry.supported_extensions())}"
