"""Loading bundles over HTTP from their status content URL."""

from __future__ import annotations

import io
import os
from typing import Any, Mapping

import requests

from rukpak.tarball import tar_gz_to_fs


class HTTPStorage:
    """Loads a bundle's gzipped tar archive from ``status.contentURL``.

    ``root_cas`` is the path of a PEM file with the certificate authorities
    to trust; ``insecure_skip_verify`` turns certificate checks off.
    """

    def __init__(
        self,
        *,
        insecure_skip_verify: bool = False,
        root_cas: str | os.PathLike | None = None,
        bearer_token: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        if insecure_skip_verify:
            self._verify: bool | str = False
        elif root_cas is not None:
            self._verify = os.fspath(root_cas)
        else:
            self._verify = True
        self._headers = {}
        if bearer_token is not None:
            self._headers["Authorization"] = f"Bearer {bearer_token}"
        self._timeout = timeout

    def load(self, owner: Mapping[str, Any]) -> Any:
        url = (owner.get("status") or {})["contentURL"]
        response = requests.get(
            url, headers=self._headers, verify=self._verify, timeout=self._timeout
        )
        with response:
            if response.status_code != 200:
                status = f"{response.status_code} {response.reason or ''}".strip()
                raise requests.HTTPError(
                    f'unexpected response status "{status}"', response=response
                )
            return tar_gz_to_fs(io.BytesIO(response.content))