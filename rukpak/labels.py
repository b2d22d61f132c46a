"""Well-known label keys, defaults and object adoption."""

from __future__ import annotations

from typing import Any, MutableMapping

CORE_OWNER_KIND_KEY = "core.rukpak.io/owner-kind"
CORE_OWNER_NAME_KEY = "core.rukpak.io/owner-name"
CORE_BUNDLE_TEMPLATE_HASH_KEY = "core.rukpak.io/bundle-template-hash"

DEFAULT_SYSTEM_NAMESPACE = "rukpak-system"
DEFAULT_UNPACK_IMAGE = "quay.io/operator-framework/rukpak:main"
DEFAULT_UPLOAD_SERVICE_NAME = "core"

BUNDLE_KIND = "Bundle"
BUNDLE_DEPLOYMENT_KIND = "BundleDeployment"


def adopt_object(
    obj: MutableMapping[str, Any], system_namespace: str, bundle_deployment_name: str
) -> None:
    """Mark ``obj`` so that the named bundle deployment can adopt it.

    ``obj`` is a Kubernetes object as a mapping; its metadata is changed in
    place and nothing is applied to a cluster.
    """
    metadata = obj.setdefault("metadata", {})

    annotations = dict(metadata.get("annotations") or {})
    annotations["meta.helm.sh/release-name"] = bundle_deployment_name
    annotations["meta.helm.sh/release-namespace"] = system_namespace
    metadata["annotations"] = annotations

    labels = dict(metadata.get("labels") or {})
    labels["app.kubernetes.io/managed-by"] = "Helm"
    labels[CORE_OWNER_KIND_KEY] = BUNDLE_DEPLOYMENT_KIND
    labels[CORE_OWNER_NAME_KEY] = bundle_deployment_name
    metadata["labels"] = labels