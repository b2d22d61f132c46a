import io
import os
import tarfile

import pytest

from rukpak.bundlefs import DirFS, MapFile, MapFS
from rukpak.tarball import fs_to_tar_gz, tar_gz_to_fs


def files_of(fsys):
    return {
        path: (fsys.read_file(path), info.perm, int(info.mtime))
        for path, info in fsys.walk()
        if info.is_regular
    }


def to_bytes(fsys):
    buf = io.BytesIO()
    fs_to_tar_gz(buf, fsys)
    return buf.getvalue()


def _sample_files():
    return {
        "manifests/deploy.yaml": MapFile(b"kind: Deployment", mode=0o640, mtime=1_600_000_000),
        "manifests/crd.yaml": MapFile(b"kind: CRD", mode=0o600, mtime=1_600_000_500.7),
        "README": MapFile(b"", mode=0o755, mtime=1_500_000_000),
    }


@pytest.fixture
def sample_fs():
    return MapFS(_sample_files())


def test_round_trip_map_fs(sample_fs):
    loaded = tar_gz_to_fs(io.BytesIO(to_bytes(sample_fs)))
    assert files_of(loaded) == files_of(sample_fs)


def test_round_trip_keeps_directories(sample_fs):
    loaded = tar_gz_to_fs(io.BytesIO(to_bytes(sample_fs)))
    assert loaded.is_dir("manifests")
    assert loaded.list_dir(".") == ["README", "manifests"]


def test_output_is_gzip():
    assert to_bytes(MapFS({"a": MapFile(b"a")}))[:2] == b"\x1f\x8b"


def test_output_is_deterministic():
    files = _sample_files()
    first = MapFS(files)
    second = MapFS(dict(reversed(list(files.items()))))
    archive = to_bytes(first)
    assert archive == to_bytes(second)
    with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
        names = sorted(m.name for m in tar.getmembers() if m.isfile())
    assert names == ["README", "manifests/crd.yaml", "manifests/deploy.yaml"]


def test_headers_have_no_owner(sample_fs):
    with tarfile.open(fileobj=io.BytesIO(to_bytes(sample_fs)), mode="r:gz") as tar:
        members = tar.getmembers()
    assert members
    assert all(m.uid == 0 and m.gid == 0 for m in members)
    assert all(m.uname == "" and m.gname == "" for m in members)


def test_round_trip_dir_fs(tmp_path):
    (tmp_path / "sub").mkdir()
    inner = tmp_path / "sub" / "inner.txt"
    inner.write_bytes(b"inner data")
    os.chmod(inner, 0o640)
    os.utime(inner, (1_400_000_000, 1_400_000_000))
    top = tmp_path / "top.txt"
    top.write_bytes(b"top")
    source = DirFS(tmp_path)
    loaded = tar_gz_to_fs(io.BytesIO(to_bytes(source)))
    assert files_of(loaded) == files_of(source)


def test_symlinks_are_skipped(tmp_path):
    (tmp_path / "target.txt").write_bytes(b"data")
    os.symlink(tmp_path / "target.txt", tmp_path / "link.txt")
    loaded = tar_gz_to_fs(io.BytesIO(to_bytes(DirFS(tmp_path))))
    assert sorted(loaded) == ["target.txt"]


def test_empty_directory_survives():
    source = MapFS({"empty": MapFile(mode=0o040755)})
    loaded = tar_gz_to_fs(io.BytesIO(to_bytes(source)))
    assert loaded.is_dir("empty")
    assert loaded.list_dir("empty") == []


def test_not_gzip_is_rejected():
    with pytest.raises(tarfile.ReadError):
        tar_gz_to_fs(io.BytesIO(b"this is not an archive"))


def test_escaping_member_rejected():
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w:gz") as tar:
        member = tarfile.TarInfo("../evil.txt")
        member.size = 1
        tar.addfile(member, io.BytesIO(b"x"))
    raw.seek(0)
    with pytest.raises(ValueError):
        tar_gz_to_fs(raw)