"""Upload service that receives and serves uploaded bundle archives."""

from __future__ import annotations

import copy
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Iterable, Mapping

from rukpak.bundlefs import DirFS, FilesOnlyFilesystem
from rukpak.unpacker import SOURCE_TYPE_UPLOAD, bundle_source, quote

DEFAULT_BUNDLE_CACHE_DIR = "/var/cache/uploads"

PHASE_PENDING = "Pending"
PHASE_UNPACKED = "Unpacked"
TYPE_UNPACKED = "Unpacked"
REASON_UNPACK_PENDING = "UnpackPending"

_ROUTE = re.compile(r"^/uploads/(?P<name>[^/]+)\.tgz$")
_RETRY_STEPS = 5
_RETRY_DELAY = 0.01
_TEXT = "text/plain; charset=utf-8"


def bundle_path(base_dir: str | os.PathLike, bundle_name: str) -> str:
    """Return the path of the archive stored for ``bundle_name``."""
    return os.path.join(os.fspath(base_dir), f"{bundle_name}.tgz")


def _code(err: BaseException) -> int:
    code = getattr(err, "code", None)
    return code if isinstance(code, int) else int(HTTPStatus.INTERNAL_SERVER_ERROR)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _set_condition(conditions: list[dict[str, Any]], new: Mapping[str, str]) -> None:
    for existing in conditions:
        if existing.get("type") == new["type"]:
            if existing.get("status") != new["status"]:
                existing["status"] = new["status"]
                existing["lastTransitionTime"] = _now()
            existing["reason"] = new["reason"]
            existing["message"] = new["message"]
            return
    conditions.append({**new, "lastTransitionTime": _now()})


@dataclass
class UploadResponse:
    """An HTTP response produced by the upload handler."""

    status: int
    body: bytes = b""
    headers: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def error(cls, message: str, status: int) -> "UploadResponse":
        body = f"{message}\n".encode()
        return cls(
            status,
            body,
            [("Content-Type", _TEXT), ("X-Content-Type-Options", "nosniff")],
        )

    @property
    def status_line(self) -> str:
        try:
            phrase = HTTPStatus(self.status).phrase
        except ValueError:
            phrase = ""
        return f"{self.status} {phrase}".strip()


class UploadHandler:
    """Accepts bundle uploads with PUT and serves them with GET.

    ``get_bundle(name)`` returns a bundle as a mapping and ``update_status``
    writes back a changed bundle's status. Errors they raise are answered with
    the error's integer ``code`` attribute as HTTP status, or 500 without one;
    status updates failing with code 409 are retried.
    """

    def __init__(
        self,
        get_bundle: Callable[[str], Mapping[str, Any]],
        update_status: Callable[[Mapping[str, Any]], Any],
        storage_dir: str | os.PathLike = DEFAULT_BUNDLE_CACHE_DIR,
    ) -> None:
        self.get_bundle = get_bundle
        self.update_status = update_status
        self.storage_dir = storage_dir

    def get(self, bundle_name: str) -> UploadResponse:
        fsys = FilesOnlyFilesystem(DirFS(self.storage_dir))
        try:
            data = fsys.read_file(f"{bundle_name}.tgz")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError, ValueError):
            return UploadResponse.error("404 page not found", 404)
        except PermissionError:
            return UploadResponse.error("403 Forbidden", 403)
        except OSError:
            return UploadResponse.error("500 Internal Server Error", 500)
        return UploadResponse(
            200,
            data,
            [("Content-Type", "application/gzip"), ("Content-Length", str(len(data)))],
        )

    def put(self, bundle_name: str, data: bytes) -> UploadResponse:
        try:
            bundle = self.get_bundle(bundle_name)
        except Exception as err:
            return UploadResponse.error(str(err), _code(err))
        source_type = bundle_source(bundle).get("type")
        if source_type != SOURCE_TYPE_UPLOAD:
            return UploadResponse.error(
                f"bundle source type is {quote(source_type)}; "
                f"expected {quote(SOURCE_TYPE_UPLOAD)}",
                409,
            )

        path = bundle_path(self.storage_dir, bundle_name)
        try:
            with open(path, "rb") as handle:
                if handle.read() == data:
                    return UploadResponse(204)
        except OSError:
            pass

        if (bundle.get("status") or {}).get("phase") == PHASE_UNPACKED:
            return UploadResponse.error(
                "bundle has already been unpacked, cannot change content of existing bundle",
                409,
            )

        try:
            with open(path, "wb") as handle:
                handle.write(data)
        except OSError as err:
            return UploadResponse.error(f"failed to store bundle data: {err}", 500)

        try:
            self._mark_pending_with_retry(bundle_name)
        except Exception as err:
            return UploadResponse.error(str(err), _code(err))
        return UploadResponse(201)

    def _mark_pending_with_retry(self, bundle_name: str) -> None:
        for attempt in range(_RETRY_STEPS):
            try:
                self._mark_pending(bundle_name)
                return
            except Exception as err:
                if _code(err) != 409 or attempt == _RETRY_STEPS - 1:
                    raise
                time.sleep(_RETRY_DELAY)

    def _mark_pending(self, bundle_name: str) -> None:
        bundle = copy.deepcopy(dict(self.get_bundle(bundle_name)))
        status = bundle.setdefault("status", {})
        if status.get("phase") == PHASE_UNPACKED:
            return
        status["phase"] = PHASE_PENDING
        conditions = status.setdefault("conditions", [])
        _set_condition(
            conditions,
            {
                "type": TYPE_UNPACKED,
                "status": "False",
                "reason": REASON_UNPACK_PENDING,
                "message": "received bundle upload, waiting for provisioner to unpack it.",
            },
        )
        self.update_status(bundle)

    def __call__(
        self, environ: dict, start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        match = _ROUTE.match(environ.get("PATH_INFO", ""))
        method = environ.get("REQUEST_METHOD", "GET")
        if match is None:
            response = UploadResponse.error("404 page not found", 404)
        elif method == "GET":
            response = self.get(match["name"])
        elif method == "PUT":
            try:
                length = int(environ.get("CONTENT_LENGTH") or 0)
                stream = environ["wsgi.input"]
                body = stream.read(length) if length > 0 else stream.read()
            except Exception as err:
                response = UploadResponse.error(f"read request body: {err}", 500)
            else:
                response = self.put(match["name"], body)
        else:
            response = UploadResponse(405)
        headers = list(response.headers)
        if not any(key.lower() == "content-length" for key, _ in headers):
            headers.append(("Content-Length", str(len(response.body))))
        start_response(response.status_line, headers)
        return [response.body]