import pytest

from rukpak.unpacker import (
    CompositeUnpacker,
    Result,
    State,
    UnpackError,
    generate_message,
)


class _FakeSource:
    def __init__(self, label):
        self.label = label
        self.seen = []

    def unpack(self, bundle):
        self.seen.append(bundle)
        return Result(state=State.UNPACKED, message=self.label)


def _bundle(source_type):
    return {"metadata": {"name": "b"}, "spec": {"source": {"type": source_type}}}


def test_generate_message():
    assert generate_message("git") == "Successfully unpacked the git Bundle"


def test_generate_message_includes_source_name():
    assert "configMaps" in generate_message("configMaps")


def test_composite_dispatches_by_type():
    image = _FakeSource("image-src")
    upload = _FakeSource("upload-src")
    unpacker = CompositeUnpacker({"image": image, "upload": upload})
    bundle = _bundle("upload")
    result = unpacker.unpack(bundle)
    assert result.message == "upload-src"
    assert upload.seen == [bundle]
    assert image.seen == []


def test_composite_unsupported_type():
    unpacker = CompositeUnpacker({"image": _FakeSource("x")})
    with pytest.raises(UnpackError, match='source type "foo" not supported'):
        unpacker.unpack(_bundle("foo"))


def test_composite_missing_source_section():
    unpacker = CompositeUnpacker({"image": _FakeSource("x")})
    with pytest.raises(UnpackError, match="not supported"):
        unpacker.unpack({"metadata": {"name": "b"}, "spec": {}})


def test_result_defaults():
    result = Result(state=State.PENDING)
    assert result.bundle is None
    assert result.resolved_source is None
    assert result.message == ""
    assert result.state == "Pending"