import pytest

from rukpak.webhook import BundleValidator, ConfigMapValidator, ValidationError


def _bundle(name, source, provisioner="plain"):
    return {
        "metadata": {"name": name},
        "spec": {"provisionerClassName": provisioner, "source": source},
    }


def _cm_source(name, path=""):
    return {"configMap": {"name": name}, "path": path}


class _ConfigMaps:
    def __init__(self, items=None, fail=False):
        self.items = items or {}
        self.fail = fail
        self.calls = []

    def __call__(self, namespace, name):
        self.calls.append((namespace, name))
        if self.fail:
            raise RuntimeError("boom")
        return self.items.get(name)


def _validator(items=None, fail=False):
    return BundleValidator(_ConfigMaps(items, fail), "rukpak-system")


def test_image_source_requires_image():
    with pytest.raises(ValidationError) as info:
        _validator().validate_create(_bundle("b", {"type": "image"}))
    assert str(info.value) == 'bundle.spec.source.image must be set for source type "image"'


def test_image_source_valid():
    bundle = _bundle("b", {"type": "image", "image": {"ref": "example/img:tag"}})
    assert _validator().validate_create(bundle) is None


def test_git_source_requires_git():
    with pytest.raises(ValidationError, match="bundle.spec.source.git must be set"):
        _validator().validate_create(_bundle("b", {"type": "git"}))


def test_git_directory_outside_repository():
    source = {"type": "git", "git": {"repository": "r", "directory": "a/../../x"}}
    with pytest.raises(ValidationError, match=r'begins with "\.\./"'):
        _validator().validate_create(_bundle("b", source))


def test_git_directory_inside_repository():
    source = {"type": "git", "git": {"repository": "r", "directory": "./charts"}}
    assert _validator().validate_create(_bundle("b", source)) is None


def test_configmaps_required():
    with pytest.raises(ValidationError) as info:
        _validator().validate_create(_bundle("b", {"type": "configMaps", "configMaps": []}))
    assert "bundle.spec.source.configmaps must be set" in str(info.value)


def test_configmap_path_outside_root_and_mutable():
    validator = _validator({"cm": {"metadata": {"name": "cm"}}})
    source = {"type": "configMaps", "configMaps": [_cm_source("cm", "../x")]}
    with pytest.raises(ValidationError) as info:
        validator.validate_create(_bundle("b", source))
    message = str(info.value)
    assert message.startswith("[")
    assert 'bundle.spec.source.configmaps[0].path is invalid: "../x" is outside bundle root' in message
    assert 'configmap "cm" is not immutable' in message


def test_configmap_immutable_and_missing_pass():
    configmaps = _ConfigMaps({"cm": {"immutable": True}})
    validator = BundleValidator(configmaps, "ns")
    source = {"type": "configMaps", "configMaps": [_cm_source("cm"), _cm_source("missing")]}
    assert validator.validate_create(_bundle("b", source)) is None
    assert configmaps.calls == [("ns", "cm"), ("ns", "missing")]


def test_configmap_lookup_error_reported():
    source = {"type": "configMaps", "configMaps": [_cm_source("cm")]}
    with pytest.raises(ValidationError) as info:
        _validator(fail=True).validate_create(_bundle("b", source))
    assert str(info.value) == "bundle.spec.source.configmaps[0].configmap.name is invalid: boom"


def test_update_spec_is_immutable():
    old = _bundle("b", {"type": "image", "image": {"ref": "a"}})
    new = _bundle("b", {"type": "image", "image": {"ref": "b"}})
    with pytest.raises(ValidationError, match="bundle.spec is immutable"):
        _validator().validate_update(old, new)


def test_update_same_spec_checks_source():
    old = _bundle("b", {"type": "image"})
    with pytest.raises(ValidationError, match="image must be set"):
        _validator().validate_update(old, _bundle("b", {"type": "image"}))


def test_delete_bundle_allowed():
    assert _validator().validate_delete(_bundle("b", {"type": "image"})) is None


def _bundles():
    return [
        _bundle("one", {"type": "configMaps", "configMaps": [_cm_source("cm")]}),
        _bundle("two", {"type": "configMaps", "configMaps": [_cm_source("cm"), _cm_source("other")]}),
        _bundle("three", {"type": "image", "image": {"ref": "x"}}),
    ]


def test_configmap_create_mutable_referenced():
    validator = ConfigMapValidator(_bundles)
    with pytest.raises(ValidationError) as info:
        validator.validate_create({"metadata": {"name": "cm"}})
    assert str(info.value) == (
        'configmap "cm" is referenced in .spec.source.configMaps[].configMap.name '
        "by bundles [one two]; referenced configmaps must have .immutable == true"
    )


def test_configmap_create_immutable_or_unreferenced():
    validator = ConfigMapValidator(_bundles)
    assert validator.validate_create({"metadata": {"name": "cm"}, "immutable": True}) is None
    assert validator.validate_create({"metadata": {"name": "free"}}) is None


def test_configmap_delete_in_use():
    validator = ConfigMapValidator(_bundles)
    with pytest.raises(ValidationError) as info:
        validator.validate_delete({"metadata": {"name": "other"}})
    assert str(info.value) == 'configmap "other" is in-use by bundle "two"'


def test_configmap_delete_unused_and_update():
    validator = ConfigMapValidator(_bundles)
    assert validator.validate_delete({"metadata": {"name": "free"}}) is None
    assert validator.validate_update({}, {}) is None


def test_configmap_list_error_propagates():
    def failing():
        raise RuntimeError("list failed")

    with pytest.raises(RuntimeError, match="list failed"):
        ConfigMapValidator(failing).validate_delete({"metadata": {"name": "cm"}})