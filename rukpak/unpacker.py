"""Unpacking results, states and a composite unpacker that dispatches by source type."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol

SOURCE_TYPE_IMAGE = "image"
SOURCE_TYPE_GIT = "git"
SOURCE_TYPE_CONFIG_MAPS = "configMaps"
SOURCE_TYPE_UPLOAD = "upload"
SOURCE_TYPE_HTTP = "http"


class State(str, Enum):
    """Progress of unpacking a bundle's content."""

    PENDING = "Pending"
    UNPACKING = "Unpacking"
    UNPACKED = "Unpacked"


@dataclass
class Result:
    """Progress information about unpacking bundle content.

    ``bundle`` is the filesystem of the bundle's root directory once unpacked,
    and ``resolved_source`` a reproducible, pinned view of the bundle's source.
    """

    state: State
    bundle: Any = None
    resolved_source: dict[str, Any] | None = None
    message: str = ""


class Unpacker(Protocol):
    """Unpacks the content of a bundle, possibly over several calls."""

    def unpack(self, bundle: Mapping[str, Any]) -> Result:
        """Unpack ``bundle`` and report progress."""


class UnpackError(Exception):
    """Raised when bundle content cannot be unpacked."""


def quote(value: Any) -> str:
    """Quote ``value`` as a double-quoted string for messages."""
    return json.dumps("" if value is None else str(value), ensure_ascii=False)


def bundle_source(bundle: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return ``spec.source`` of a bundle, or an empty mapping."""
    return (bundle.get("spec") or {}).get("source") or {}


def generate_message(source_name: str) -> str:
    """Return the message reported after a successful unpack."""
    return f"Successfully unpacked the {source_name} Bundle"


class CompositeUnpacker:
    """Unpacks bundles with the source registered for their source type."""

    def __init__(self, sources: Mapping[str, Unpacker]) -> None:
        self.sources = dict(sources)

    def unpack(self, bundle: Mapping[str, Any]) -> Result:
        source_type = bundle_source(bundle).get("type")
        source = self.sources.get(source_type)
        if source is None:
            raise UnpackError(f"source type {quote(source_type)} not supported")
        return source.unpack(bundle)