"""Build version information."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Mapping

_UNKNOWN = "unknown"
_STATES = {"true": "dirty", "false": "clean"}


@dataclass(frozen=True)
class BuildInfo:
    """Version-control settings recorded for a build, such as ``vcs.revision``."""

    settings: Mapping[str, str] = field(default_factory=dict)

    @property
    def git_commit(self) -> str:
        return self.settings.get("vcs.revision", _UNKNOWN)

    @property
    def commit_date(self) -> str:
        return self.settings.get("vcs.time", _UNKNOWN)

    @property
    def repo_state(self) -> str:
        return _STATES.get(self.settings.get("vcs.modified", ""), _UNKNOWN)


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def version_string(info: BuildInfo | None = None) -> str:
    """Describe the revision, commit date and working-tree state of a build."""
    info = info if info is not None else BuildInfo()
    return (
        f"revision: {_quote(info.git_commit)}, "
        f"date: {_quote(info.commit_date)}, "
        f"state: {_quote(info.repo_state)}"
    )