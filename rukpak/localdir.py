"""Bundle storage in a local directory of gzipped tar archives."""

from __future__ import annotations

import io
import mimetypes
import os
import posixpath
import tarfile
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import urlsplit

from rukpak.bundlefs import DirFS, FilesOnlyFilesystem
from rukpak.tarball import fs_to_tar_gz, tar_gz_to_fs

DEFAULT_BUNDLE_CACHE_DIR = "/var/cache/bundles"

_TEXT = "text/plain; charset=utf-8"


def _owner_name(owner: Mapping[str, Any]) -> str:
    return (owner.get("metadata") or {})["name"]


def _bundle_file(bundle_name: str) -> str:
    return f"{bundle_name}.tgz"


def _error(start_response: Callable[..., Any], status: str, text: str) -> list[bytes]:
    body = f"{text}\n".encode()
    start_response(
        status,
        [
            ("Content-Type", _TEXT),
            ("X-Content-Type-Options", "nosniff"),
            ("Content-Length", str(len(body))),
        ],
    )
    return [body]


def _serve_files(
    fsys: Any, prefix: str, environ: dict, start_response: Callable[..., Any]
) -> list[bytes]:
    path = environ.get("PATH_INFO", "")
    if not path.startswith(prefix):
        return _error(start_response, "404 Not Found", "404 page not found")
    name = posixpath.normpath("/" + path[len(prefix):]).lstrip("/") or "."
    try:
        data = fsys.read_file(name)
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError, ValueError):
        return _error(start_response, "404 Not Found", "404 page not found")
    except PermissionError:
        return _error(start_response, "403 Forbidden", "403 Forbidden")
    except OSError:
        return _error(start_response, "500 Internal Server Error", "500 Internal Server Error")
    content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    start_response(
        "200 OK",
        [("Content-Type", content_type), ("Content-Length", str(len(data)))],
    )
    return [b"" if environ.get("REQUEST_METHOD") == "HEAD" else data]


@dataclass
class LocalDirectory:
    """Stores each bundle as ``<name>.tgz`` under ``root_directory``.

    ``url`` is the base URL under which the directory is served; an instance is
    itself a WSGI application serving the stored archives.
    """

    root_directory: str | os.PathLike
    url: str = ""

    def _bundle_path(self, bundle_name: str) -> str:
        return os.path.join(os.fspath(self.root_directory), _bundle_file(bundle_name))

    def load(self, owner: Mapping[str, Any]) -> Any:
        with open(self._bundle_path(_owner_name(owner)), "rb") as handle:
            return tar_gz_to_fs(handle)

    def store(self, owner: Mapping[str, Any], bundle: Any) -> None:
        name = _owner_name(owner)
        buffer = io.BytesIO()
        try:
            fs_to_tar_gz(buffer, bundle)
        except (OSError, ValueError, tarfile.TarError) as err:
            raise ValueError(f"convert bundle {name!r} to tar.gz: {err}") from err
        with open(self._bundle_path(name), "wb") as handle:
            handle.write(buffer.getvalue())

    def delete(self, owner: Mapping[str, Any]) -> None:
        try:
            os.remove(self._bundle_path(_owner_name(owner)))
        except FileNotFoundError:
            pass

    def url_for(self, owner: Mapping[str, Any]) -> str:
        return f"{self.url}{_bundle_file(_owner_name(owner))}"

    def __call__(
        self, environ: dict, start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        fsys = FilesOnlyFilesystem(DirFS(self.root_directory))
        return _serve_files(fsys, urlsplit(self.url).path, environ, start_response)