"""Conversion between bundle filesystems and gzipped tar archives."""

from __future__ import annotations

import gzip
import io
import posixpath
import stat
import tarfile
from typing import Any, BinaryIO

from rukpak.bundlefs import MapFile, MapFS


def fs_to_tar_gz(stream: BinaryIO, fsys: Any) -> None:
    """Write ``fsys`` to ``stream`` as a gzipped tar archive.

    Symlinks are left out, and user and group information is cleared so that
    archives do not depend on who owns the source files.
    """
    with gzip.GzipFile(filename="", mode="wb", fileobj=stream, mtime=0) as gz, \
            tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for path, info in fsys.walk():
            if info.is_symlink:
                continue
            member = tarfile.TarInfo(path)
            member.uid = 0
            member.gid = 0
            member.uname = ""
            member.gname = ""
            member.mode = info.perm
            member.mtime = int(info.mtime)
            if info.is_dir:
                member.type = tarfile.DIRTYPE
                tar.addfile(member)
            elif info.is_regular:
                data = fsys.read_file(path)
                member.size = len(data)
                tar.addfile(member, io.BytesIO(data))
            else:
                raise ValueError(f"generate tar.gz from FS: unsupported file type for {path!r}")


def _member_name(name: str) -> str | None:
    clean = posixpath.normpath(name)
    if clean == ".":
        return None
    if clean == ".." or clean.startswith("../") or clean.startswith("/"):
        raise ValueError(f"invalid path {name!r} in archive")
    return clean


def tar_gz_to_fs(stream: BinaryIO) -> MapFS:
    """Read a gzipped tar archive from ``stream`` into an in-memory filesystem.

    Directories and regular files are kept; other member types are skipped.
    """
    fsys = MapFS()
    with tarfile.open(fileobj=stream, mode="r|gz") as tar:
        for member in tar:
            name = _member_name(member.name)
            if name is None:
                continue
            perm = stat.S_IMODE(member.mode)
            if member.isdir():
                fsys[name] = MapFile(mode=stat.S_IFDIR | perm, mtime=float(member.mtime))
            elif member.isreg():
                extracted = tar.extractfile(member)
                data = extracted.read() if extracted is not None else b""
                fsys[name] = MapFile(data, mode=stat.S_IFREG | perm, mtime=float(member.mtime))
    return fsys