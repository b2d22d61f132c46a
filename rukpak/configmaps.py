"""Bundle source that assembles bundle content from configmaps."""

from __future__ import annotations

import base64
import copy
import posixpath
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from rukpak.bundlefs import MapFile, MapFS
from rukpak.unpacker import (
    SOURCE_TYPE_CONFIG_MAPS,
    Result,
    State,
    UnpackError,
    bundle_source,
    generate_message,
    quote,
)


def _binary(value: bytes | str) -> bytes:
    if isinstance(value, str):
        return base64.b64decode(value)
    return bytes(value)


def _aggregate(messages: list[str]) -> str:
    if len(messages) == 1:
        return messages[0]
    return "[" + ", ".join(messages) + "]"


@dataclass
class ConfigMapsSource:
    """Builds a bundle filesystem from the configmaps a bundle references.

    ``reader`` is called as ``reader(namespace, name)`` and returns the
    configmap as a mapping, raising if it cannot be read.
    """

    reader: Callable[[str, str], Mapping[str, Any]]
    config_map_namespace: str

    def unpack(self, bundle: Mapping[str, Any]) -> Result:
        source = bundle_source(bundle)
        if source.get("type") != SOURCE_TYPE_CONFIG_MAPS:
            raise UnpackError(f"bundle source type {quote(source.get('type'))} not supported")
        config_map_sources = source.get("configMaps")
        if config_map_sources is None:
            raise UnpackError("bundle source configmaps configuration is unset")

        bundle_fs = MapFS()
        seen: dict[str, set[str]] = {}

        for cm_source in config_map_sources:
            cm_name = (cm_source.get("configMap") or {}).get("name", "")
            directory = posixpath.normpath(cm_source.get("path") or "")
            try:
                configmap = self.reader(self.config_map_namespace, cm_name)
            except Exception as err:
                raise UnpackError(
                    f"get configmap {self.config_map_namespace}/{cm_name}: {err}"
                ) from err

            files = [
                (filename, data.encode("utf-8"))
                for filename, data in (configmap.get("data") or {}).items()
            ]
            files += [
                (filename, _binary(data))
                for filename, data in (configmap.get("binaryData") or {}).items()
            ]
            for filename, data in files:
                path = posixpath.normpath(posixpath.join(directory, filename))
                seen.setdefault(path, set()).add(cm_name)
                bundle_fs[path] = MapFile(data)

        errors = [
            f"duplicate path {quote(path)} found in configmaps [{' '.join(sorted(names))}]"
            for path, names in sorted(seen.items())
            if len(names) > 1
        ]
        if errors:
            raise UnpackError(_aggregate(errors))

        resolved_source = {
            "type": SOURCE_TYPE_CONFIG_MAPS,
            "configMaps": copy.deepcopy(config_map_sources),
        }
        return Result(
            state=State.UNPACKED,
            bundle=bundle_fs,
            resolved_source=resolved_source,
            message=generate_message("configMaps"),
        )