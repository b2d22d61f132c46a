from rukpak.labels import (
    BUNDLE_DEPLOYMENT_KIND,
    CORE_OWNER_KIND_KEY,
    CORE_OWNER_NAME_KEY,
    adopt_object,
)


def test_adopt_object_without_metadata():
    obj = {"kind": "ConfigMap"}
    adopt_object(obj, "rukpak-system", "my-bd")
    assert obj["metadata"]["annotations"] == {
        "meta.helm.sh/release-name": "my-bd",
        "meta.helm.sh/release-namespace": "rukpak-system",
    }
    assert obj["metadata"]["labels"] == {
        "app.kubernetes.io/managed-by": "Helm",
        CORE_OWNER_KIND_KEY: BUNDLE_DEPLOYMENT_KIND,
        CORE_OWNER_NAME_KEY: "my-bd",
    }


def test_adopt_object_keeps_existing_metadata():
    obj = {
        "metadata": {
            "name": "cm",
            "labels": {"app": "demo"},
            "annotations": {"note": "kept"},
        }
    }
    adopt_object(obj, "ns", "bd")
    assert obj["metadata"]["name"] == "cm"
    assert obj["metadata"]["labels"]["app"] == "demo"
    assert obj["metadata"]["annotations"]["note"] == "kept"
    assert obj["metadata"]["labels"]["core.rukpak.io/owner-kind"] == "BundleDeployment"
    assert obj["metadata"]["labels"]["core.rukpak.io/owner-name"] == "bd"


def test_adopt_object_overwrites_previous_owner():
    obj = {"metadata": {"labels": {CORE_OWNER_NAME_KEY: "old"}}}
    adopt_object(obj, "ns", "new")
    adopt_object(obj, "ns", "newer")
    assert obj["metadata"]["labels"][CORE_OWNER_NAME_KEY] == "newer"
    assert obj["metadata"]["annotations"]["meta.helm.sh/release-name"] == "newer"


def test_adopt_object_handles_null_maps():
    obj = {"metadata": {"labels": None, "annotations": None}}
    adopt_object(obj, "ns", "bd")
    assert obj["metadata"]["labels"]["app.kubernetes.io/managed-by"] == "Helm"
    assert obj["metadata"]["annotations"]["meta.helm.sh/release-namespace"] == "ns"