"""Bundle sources that download gzipped tar archives over HTTP."""

from __future__ import annotations

import copy
import io
import tarfile
import zlib
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import requests

from rukpak.tarball import tar_gz_to_fs
from rukpak.unpacker import (
    SOURCE_TYPE_HTTP,
    SOURCE_TYPE_UPLOAD,
    Result,
    State,
    UnpackError,
    bundle_source,
    generate_message,
    quote,
)

_GZIP_MAGIC = b"\x1f\x8b"
_GZIP_HEADER_SIZE = 10
_BAD_URL = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
)


def _status_line(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()


def _gzip_header_error(data: bytes) -> str | None:
    if not data:
        return "EOF"
    if len(data) < _GZIP_HEADER_SIZE:
        return "unexpected EOF"
    if not data.startswith(_GZIP_MAGIC):
        return "gzip: invalid header"
    return None


def _untar(data: bytes, context: str) -> Any:
    try:
        return tar_gz_to_fs(io.BytesIO(data))
    except (tarfile.TarError, OSError, EOFError, ValueError, zlib.error) as err:
        raise UnpackError(f"{context}{err}") from err


def _get(
    session: Any,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    auth: tuple[str, str] | None = None,
    verify: bool | str = True,
    timeout: float,
) -> requests.Response:
    action = f"GET {url}"
    http = session if session is not None else requests
    try:
        return http.get(url, headers=headers, auth=auth, verify=verify, timeout=timeout)
    except _BAD_URL as err:
        raise UnpackError(
            f"create http request {quote(action)} for bundle content: {err}"
        ) from err
    except requests.RequestException as err:
        raise UnpackError(f"{action}: http request for bundle content failed: {err}") from err


def _secret_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


@dataclass
class UploadSource:
    """Fetches uploaded bundles from the upload service at ``base_download_url``."""

    base_download_url: str
    bearer_token: str = ""
    timeout: float = 10.0
    verify: bool | str = True
    session: Any = None

    def unpack(self, bundle: Mapping[str, Any]) -> Result:
        source = bundle_source(bundle)
        if source.get("type") != SOURCE_TYPE_UPLOAD:
            raise UnpackError(
                f"cannot unpack source type {quote(source.get('type'))} "
                f"with {quote(SOURCE_TYPE_UPLOAD)} unpacker"
            )
        name = (bundle.get("metadata") or {}).get("name", "")
        url = f"{self.base_download_url}/uploads/{name}.tgz"
        action = f"GET {url}"

        response = _get(
            self.session,
            url,
            headers={"Authorization": f"Bearer {self.bearer_token}"},
            verify=self.verify,
            timeout=self.timeout,
        )
        with response:
            if response.status_code == 404:
                return Result(state=State.PENDING, message="waiting for bundle to be uploaded")
            if response.status_code != 200:
                raise UnpackError(f"{action}: unexpected status {quote(_status_line(response))}")
            data = response.content

        header_error = _gzip_header_error(data)
        if header_error is not None:
            raise UnpackError(f"read response as gzip: {header_error}")
        bundle_fs = _untar(data, "untar bundle contents from response: ")
        return Result(
            state=State.UNPACKED,
            bundle=bundle_fs,
            resolved_source=copy.deepcopy(dict(source)),
            message=generate_message("upload"),
        )


@dataclass
class HTTPSource:
    """Fetches bundles from the URL given in ``spec.source.http.url``.

    ``reader`` is called as ``reader(namespace, name)`` to read the secret
    holding basic-auth ``username`` and ``password`` when one is named.
    """

    reader: Callable[[str, str], Mapping[str, Any]]
    secret_namespace: str
    timeout: float = 10.0
    session: Any = None

    def _credentials(self, secret_name: str) -> tuple[str, str]:
        secret = self.reader(self.secret_namespace, secret_name)
        data = secret.get("data") or {}
        return _secret_text(data.get("username")), _secret_text(data.get("password"))

    def unpack(self, bundle: Mapping[str, Any]) -> Result:
        source = bundle_source(bundle)
        if source.get("type") != SOURCE_TYPE_HTTP:
            raise UnpackError(
                f"cannot unpack source type {quote(source.get('type'))} "
                f"with {quote(SOURCE_TYPE_HTTP)} unpacker"
            )
        http_source = source.get("http") or {}
        url = http_source.get("url", "")
        action = f"GET {url}"
        auth_config = http_source.get("auth") or {}

        auth = None
        secret_name = (auth_config.get("secret") or {}).get("name", "")
        if secret_name:
            auth = self._credentials(secret_name)
        verify = not auth_config.get("insecureSkipVerify", False)

        response = _get(self.session, url, auth=auth, verify=verify, timeout=self.timeout)
        with response:
            if response.status_code != 200:
                raise UnpackError(f"{action}: unexpected status {quote(_status_line(response))}")
            data = response.content

        header_error = _gzip_header_error(data)
        if header_error is not None:
            raise UnpackError(header_error)
        bundle_fs = _untar(data, "error creating FS: ")
        return Result(
            state=State.UNPACKED,
            bundle=bundle_fs,
            resolved_source=copy.deepcopy(dict(source)),
            message=generate_message("http"),
        )