"""Read-only bundle filesystems addressed by slash-separated relative paths.

Every filesystem here offers ``read_file``, ``is_dir``, ``list_dir`` and
``walk``. Paths follow the same rules throughout: ``"."`` is the root, and any
other path is a non-empty sequence of names joined by ``"/"`` with no empty,
``"."`` or ``".."`` elements.
"""

from __future__ import annotations

import errno
import os
import posixpath
import stat
from dataclasses import dataclass
from typing import Any, Iterator

_DIR_MODE = stat.S_IFDIR | 0o555


def _not_found(name: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), name)


def _check_path(name: str) -> None:
    if name == ".":
        return
    if not name or name.startswith("/") or any(
        part in ("", ".", "..") for part in name.split("/")
    ):
        raise ValueError(f"invalid path {name!r}")


def _join(parent: str, child: str) -> str:
    return child if parent == "." else f"{parent}/{child}"


def _walk(fsys: Any, name: str = ".") -> Iterator[tuple[str, MapFile]]:
    info = fsys._stat(name)
    yield name, info
    if info.is_dir:
        for child in fsys.list_dir(name):
            yield from _walk(fsys, _join(name, child))


@dataclass
class MapFile:
    """A file's content and metadata; ``mode`` carries the file type bits."""

    data: bytes = b""
    mode: int = 0o644
    mtime: float = 0.0

    def __post_init__(self) -> None:
        if stat.S_IFMT(self.mode) == 0:
            self.mode |= stat.S_IFREG

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def perm(self) -> int:
        return stat.S_IMODE(self.mode)


class MapFS(dict):
    """An in-memory filesystem mapping paths to ``MapFile`` entries.

    Parent directories of stored paths exist implicitly.
    """

    def _stat(self, name: str) -> MapFile:
        _check_path(name)
        entry = self.get(name)
        if entry is not None:
            return entry
        if name == ".":
            return MapFile(mode=_DIR_MODE)
        prefix = name + "/"
        if any(key.startswith(prefix) for key in self):
            return MapFile(mode=_DIR_MODE)
        raise _not_found(name)

    def read_file(self, name: str) -> bytes:
        info = self._stat(name)
        if info.is_dir:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), name)
        return info.data

    def is_dir(self, name: str) -> bool:
        try:
            return self._stat(name).is_dir
        except FileNotFoundError:
            return False

    def list_dir(self, name: str) -> list[str]:
        if not self._stat(name).is_dir:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), name)
        prefix = "" if name == "." else name + "/"
        children = {
            key[len(prefix):].split("/", 1)[0]
            for key in self
            if key != "." and key.startswith(prefix) and key != name
        }
        return sorted(children)

    def walk(self) -> Iterator[tuple[str, MapFile]]:
        """Yield ``(path, info)`` for every entry, depth first in lexical order."""
        return _walk(self)


@dataclass
class DirFS:
    """A filesystem rooted at a directory on disk."""

    root: str | os.PathLike

    def _path(self, name: str) -> str:
        _check_path(name)
        if name == ".":
            return os.fspath(self.root)
        return os.path.join(os.fspath(self.root), *name.split("/"))

    def _stat(self, name: str) -> MapFile:
        st = os.lstat(self._path(name))
        return MapFile(mode=st.st_mode, mtime=st.st_mtime)

    def read_file(self, name: str) -> bytes:
        with open(self._path(name), "rb") as handle:
            return handle.read()

    def is_dir(self, name: str) -> bool:
        return os.path.isdir(self._path(name))

    def list_dir(self, name: str) -> list[str]:
        return sorted(os.listdir(self._path(name)))

    def walk(self) -> Iterator[tuple[str, MapFile]]:
        """Yield ``(path, info)`` for every entry without following symlinks."""
        return _walk(self)


@dataclass
class FilesOnlyFilesystem:
    """Exposes only regular files of another filesystem.

    Directories, symlinks and other special files are reported as missing, so
    that only bundle files can be served from it.
    """

    fs: Any

    def _stat(self, name: str) -> MapFile:
        info = self.fs._stat(name)
        if not info.is_regular:
            raise _not_found(name)
        return info

    def read_file(self, name: str) -> bytes:
        self._stat(name)
        return self.fs.read_file(name)


@dataclass
class BaseDirFS:
    """Presents ``fsys`` as the single directory ``base_dir`` under the root."""

    fsys: Any
    base_dir: str

    def _resolve(self, name: str) -> str | None:
        _check_path(name)
        if name == ".":
            return None
        if name == self.base_dir:
            return "."
        prefix = self.base_dir + "/"
        if name.startswith(prefix):
            return name[len(prefix):]
        raise _not_found(name)

    def _stat(self, name: str) -> MapFile:
        sub = self._resolve(name)
        if sub is None:
            return MapFile(mode=_DIR_MODE)
        return self.fsys._stat(sub)

    def read_file(self, name: str) -> bytes:
        sub = self._resolve(name)
        if sub is None:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), name)
        return self.fsys.read_file(sub)

    def is_dir(self, name: str) -> bool:
        try:
            sub = self._resolve(name)
        except FileNotFoundError:
            return False
        return True if sub is None else self.fsys.is_dir(sub)

    def list_dir(self, name: str) -> list[str]:
        sub = self._resolve(name)
        if sub is None:
            return [self.base_dir]
        return self.fsys.list_dir(sub)

    def walk(self) -> Iterator[tuple[str, MapFile]]:
        """Yield ``(path, info)`` for every entry, depth first in lexical order."""
        return _walk(self)


def ensure_base_dir_fs(fsys: Any, default_base_dir: str) -> Any:
    """Return ``fsys`` if its root holds exactly one directory.

    Otherwise return a filesystem in which the contents of ``fsys`` appear
    inside ``default_base_dir``, which must be a single path segment.
    """
    clean = posixpath.normpath(default_base_dir)
    if posixpath.split(clean)[0]:
        raise ValueError(
            f"default base directory {default_base_dir!r} contains multiple "
            "path segments: must be exactly one"
        )
    entries = fsys.list_dir(".")
    if len(entries) == 1 and fsys._stat(entries[0]).is_dir:
        return fsys
    return BaseDirFS(fsys, default_base_dir)