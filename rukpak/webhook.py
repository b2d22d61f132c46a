"""Admission validation for bundles and the configmaps they reference."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from rukpak.unpacker import (
    SOURCE_TYPE_CONFIG_MAPS,
    SOURCE_TYPE_GIT,
    SOURCE_TYPE_IMAGE,
    bundle_source,
    quote,
)

BUNDLE_WEBHOOK_PATH = "/validate-core-rukpak-io-v1alpha1-bundle"
CONFIGMAP_WEBHOOK_PATH = "/validate-core-v1-configmap"


class ValidationError(Exception):
    """Raised when an admission request is rejected."""


def _aggregate(messages: list[str]) -> str:
    unique = list(dict.fromkeys(messages))
    if len(unique) == 1:
        return unique[0]
    return "[" + ", ".join(unique) + "]"


def _name(obj: Mapping[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "")


def _spec(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("spec") or {}


def _go_list(items: Iterable[str]) -> str:
    return "[" + " ".join(items) + "]"


def _require_objects(*objects: Any) -> None:
    """Reject admission objects that are not mappings."""
    for obj in objects:
        if not isinstance(obj, Mapping):
            raise TypeError(f"expected a mapping, got {type(obj).__name__}")


@dataclass
class BundleValidator:
    """Validates bundles as they are created or updated.

    ``get_configmap`` is called as ``get_configmap(namespace, name)`` and
    returns the configmap as a mapping, or ``None`` when it does not exist.
    """

    get_configmap: Callable[[str, str], Mapping[str, Any] | None]
    system_namespace: str

    def validate_create(self, bundle: Mapping[str, Any]) -> None:
        self._check_bundle_source(bundle)

    def validate_update(
        self, old_bundle: Mapping[str, Any], new_bundle: Mapping[str, Any]
    ) -> None:
        if _spec(old_bundle) != _spec(new_bundle):
            raise ValidationError("bundle.spec is immutable")
        self._check_bundle_source(new_bundle)

    def validate_delete(self, bundle: Mapping[str, Any]) -> None:
        """Allow any bundle to be deleted; only the object's shape is checked."""
        _require_objects(bundle)

    def _check_bundle_source(self, bundle: Mapping[str, Any]) -> None:
        source = bundle_source(bundle)
        source_type = source.get("type")
        if source_type == SOURCE_TYPE_IMAGE:
            if source.get("image") is None:
                raise ValidationError(
                    'bundle.spec.source.image must be set for source type "image"'
                )
        elif source_type == SOURCE_TYPE_GIT:
            git = source.get("git")
            if git is None:
                raise ValidationError(
                    'bundle.spec.source.git must be set for source type "git"'
                )
            if posixpath.normpath(git.get("directory") or "").startswith("../"):
                raise ValidationError(
                    'bundle.spec.source.git.directory begins with "../": '
                    "directory must define path within the repository"
                )
        elif source_type == SOURCE_TYPE_CONFIG_MAPS:
            config_maps = source.get("configMaps") or []
            if not config_maps:
                raise ValidationError(
                    'bundle.spec.source.configmaps must be set for source type "configmaps"'
                )
            errors: list[str] = []
            for index, cm_source in enumerate(config_maps):
                path = cm_source.get("path") or ""
                if posixpath.normpath(path).startswith("../"):
                    errors.append(
                        f"bundle.spec.source.configmaps[{index}].path is invalid: "
                        f"{quote(path)} is outside bundle root"
                    )
                cm_name = (cm_source.get("configMap") or {}).get("name", "")
                problem = self._configmap_immutability_problem(cm_name)
                if problem is not None:
                    errors.append(
                        f"bundle.spec.source.configmaps[{index}].configmap.name "
                        f"is invalid: {problem}"
                    )
            if errors:
                raise ValidationError(_aggregate(errors))

    def _configmap_immutability_problem(self, name: str) -> str | None:
        try:
            configmap = self.get_configmap(self.system_namespace, name)
        except Exception as err:
            return str(err)
        if configmap is None:
            return None
        if configmap.get("immutable") is not True:
            return f"configmap {quote(name)} is not immutable"
        return None


@dataclass
class ConfigMapValidator:
    """Keeps configmaps referenced by bundles immutable and in place.

    ``list_bundles`` returns every bundle in the cluster as mappings.
    """

    list_bundles: Callable[[], Iterable[Mapping[str, Any]]]

    def validate_create(self, configmap: Mapping[str, Any]) -> None:
        if configmap.get("immutable") is True:
            return
        name = _name(configmap)
        referrers = [
            _name(bundle)
            for bundle in self.list_bundles()
            if bundle_source(bundle).get("type") == SOURCE_TYPE_CONFIG_MAPS
            for ref in bundle_source(bundle).get("configMaps") or []
            if (ref.get("configMap") or {}).get("name") == name
        ]
        if referrers:
            raise ValidationError(
                f"configmap {quote(name)} is referenced in "
                ".spec.source.configMaps[].configMap.name by bundles "
                f"{_go_list(referrers)}; referenced configmaps must have "
                ".immutable == true"
            )

    def validate_update(
        self, old_configmap: Mapping[str, Any], new_configmap: Mapping[str, Any]
    ) -> None:
        """Allow any configmap update; only the objects' shape is checked."""
        _require_objects(old_configmap, new_configmap)

    def validate_delete(self, configmap: Mapping[str, Any]) -> None:
        name = _name(configmap)
        for bundle in self.list_bundles():
            for ref in bundle_source(bundle).get("configMaps") or []:
                if (ref.get("configMap") or {}).get("name") == name:
                    raise ValidationError(
                        f"configmap {quote(name)} is in-use by bundle {quote(_name(bundle))}"
                    )