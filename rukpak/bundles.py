"""Bundle template hashing, matching, ordering and label selection."""

from __future__ import annotations

import copy
import json
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, MutableSequence

from rukpak.labels import (
    BUNDLE_DEPLOYMENT_KIND,
    BUNDLE_KIND,
    CORE_BUNDLE_TEMPLATE_HASH_KEY,
    CORE_OWNER_KIND_KEY,
    CORE_OWNER_NAME_KEY,
    DEFAULT_SYSTEM_NAMESPACE,
)

MAX_GENERATED_BUNDLE_LIMIT = 4
DEFAULT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

_SAFE_ALPHANUMS = "bcdfghjklmnpqrstvwxz2456789"
_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193
_ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)


class MaxGeneratedLimitError(Exception):
    """Raised when too many bundles already match a deployment's selector."""

    def __init__(self, message: str = "reached the maximum generated Bundle limit") -> None:
        super().__init__(message)


def _fnv1a_32(data: bytes) -> int:
    value = _FNV32_OFFSET
    for byte in data:
        value = ((value ^ byte) * _FNV32_PRIME) & 0xFFFFFFFF
    return value


def _encode_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def deep_hash_object(obj: Any) -> int:
    """Return a 32-bit FNV-1a hash of a canonical dump of ``obj``.

    Mappings are dumped with sorted keys, so the hash depends only on values.
    """
    canonical = json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_encode_default,
    )
    return _fnv1a_32(canonical.encode("utf-8"))


def _safe_encode(text: str) -> str:
    return "".join(_SAFE_ALPHANUMS[ord(char) % len(_SAFE_ALPHANUMS)] for char in text)


def generate_template_hash(template: Any) -> str:
    """Return the short, name-safe hash that identifies a bundle template."""
    return _safe_encode(format(deep_hash_object(template), "x")[:6])


def generate_bundle_name(bd_name: str, template_hash: str) -> str:
    """Return the name of the bundle generated for a deployment and template hash."""
    return f"{bd_name}-{template_hash}"


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def check_desired_bundle_template(
    existing_bundle: Mapping[str, Any], desired_template: Any
) -> bool:
    """Tell whether the bundle's template-hash label matches ``desired_template``."""
    labels = _metadata(existing_bundle).get("labels") or {}
    if not labels:
        return False
    existing_hash = labels.get(CORE_BUNDLE_TEMPLATE_HASH_KEY)
    if existing_hash is None:
        return False
    return existing_hash == generate_template_hash(desired_template)


def check_existing_bundles_match_template(
    existing_bundles: Iterable[Mapping[str, Any]], desired_template: Any
) -> dict[str, Any] | None:
    """Return a copy of the first bundle matching the template, or ``None``."""
    return next(
        (
            copy.deepcopy(bundle)
            for bundle in existing_bundles
            if check_desired_bundle_template(bundle, desired_template)
        ),
        None,
    )


def _creation_time(bundle: Mapping[str, Any]) -> datetime:
    value = _metadata(bundle).get("creationTimestamp")
    if value is None or value == "":
        return _ZERO_TIME
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def sort_bundles_by_creation(bundles: MutableSequence[Mapping[str, Any]]) -> None:
    """Sort ``bundles`` in place, oldest ``metadata.creationTimestamp`` first."""
    bundles.sort(key=_creation_time)


def merge_maps(*args: Mapping[str, str] | None) -> dict[str, str]:
    """Merge mappings into a new dict; later mappings win on equal keys."""
    merged: dict[str, str] = {}
    for mapping in args:
        merged.update(mapping or {})
    return merged


def pod_namespace(namespace_file: str = DEFAULT_NAMESPACE_FILE) -> str:
    """Return the namespace of the running pod, or the default system namespace."""
    try:
        with open(namespace_file, encoding="utf-8") as handle:
            return handle.read()
    except OSError:
        return DEFAULT_SYSTEM_NAMESPACE


def _label_selector(name: str, kind: str) -> dict[str, str]:
    return {CORE_OWNER_KIND_KEY: kind, CORE_OWNER_NAME_KEY: name}


def bundle_label_selector(bundle: Mapping[str, Any]) -> dict[str, str]:
    """Return the labels that select resources owned by ``bundle``."""
    return _label_selector(_metadata(bundle).get("name", ""), BUNDLE_KIND)


def bundle_deployment_label_selector(bundle_deployment: Mapping[str, Any]) -> dict[str, str]:
    """Return the labels that select resources owned by a bundle deployment."""
    return _label_selector(_metadata(bundle_deployment).get("name", ""), BUNDLE_DEPLOYMENT_KIND)