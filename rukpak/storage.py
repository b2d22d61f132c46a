"""Bundle storage interfaces and a storage that falls back to another loader."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Protocol

Owner = Mapping[str, Any]


class Loader(Protocol):
    """Loads the filesystem of a bundle owned by ``owner``."""

    def load(self, owner: Owner) -> Any:
        """Return the stored filesystem for ``owner``."""


class Storage(Loader, Protocol):
    """Stores, serves and deletes bundle filesystems."""

    def store(self, owner: Owner, bundle: Any) -> None:
        """Persist ``bundle`` for ``owner``."""

    def delete(self, owner: Owner) -> None:
        """Remove whatever is stored for ``owner``."""

    def url_for(self, owner: Owner) -> str:
        """Return the URL at which the bundle for ``owner`` is served."""

    def __call__(
        self, environ: dict, start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        """Serve stored bundles as a WSGI application."""


@dataclass
class FallbackLoaderStorage:
    """A storage whose loads fall back to another loader on any failure."""

    storage: Any
    fallback_loader: Any

    def load(self, owner: Owner) -> Any:
        try:
            return self.storage.load(owner)
        except Exception:
            return self.fallback_loader.load(owner)

    def store(self, owner: Owner, bundle: Any) -> None:
        self.storage.store(owner, bundle)

    def delete(self, owner: Owner) -> None:
        self.storage.delete(owner)

    def url_for(self, owner: Owner) -> str:
        return self.storage.url_for(owner)

    def __call__(
        self, environ: dict, start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        return self.storage(environ, start_response)


def with_fallback_loader(storage: Any, fallback: Any) -> FallbackLoaderStorage:
    """Wrap ``storage`` so that failed loads are retried with ``fallback``."""
    return FallbackLoaderStorage(storage, fallback)