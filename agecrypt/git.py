"""
Git repository access.

The filter core needs exactly one thing from git's storage: the bytes
currently staged for a path. That capability is the ``StagedObjectStore``
protocol; :class:`Repository` implements it on top of dulwich and also
knows where the policy, the local configuration and the cache live.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from dulwich.errors import NoIndexPresent, NotGitRepository
from dulwich.repo import Repo

from .config import (
    CACHE_DIRNAME,
    LOCAL_CONFIG_FILENAME,
    POLICY_FILENAME,
    STATE_DIRNAME,
)
from .exceptions import ConfigError

log = logging.getLogger(__name__)


class StagedObjectStore(Protocol):
    def get(self, path: str) -> Optional[bytes]:
        """Return the bytes staged for ``path``, or None."""
        ...


class Repository:
    def __init__(self, repo: Repo):
        self._repo = repo
        self.workdir = Path(repo.path)
        self.controldir = Path(repo.controldir())

    @classmethod
    def discover(cls, start: str | Path = ".") -> "Repository":
        try:
            return cls(Repo.discover(str(start)))
        except NotGitRepository as e:
            raise ConfigError(f"Not inside a git repository: {Path(start).resolve()}") from e

    @classmethod
    def open(cls, path: str | Path) -> "Repository":
        try:
            return cls(Repo(str(path)))
        except NotGitRepository as e:
            raise ConfigError(f"Not a git repository: {path}") from e

    # ------------------------------------------------------------------
    # Well-known locations
    # ------------------------------------------------------------------

    @property
    def policy_path(self) -> Path:
        return self.workdir / POLICY_FILENAME

    @property
    def state_dir(self) -> Path:
        return self.controldir / STATE_DIRNAME

    @property
    def local_config_path(self) -> Path:
        return self.state_dir / LOCAL_CONFIG_FILENAME

    @property
    def cache_dir(self) -> Path:
        return self.state_dir / CACHE_DIRNAME

    # ------------------------------------------------------------------
    # StagedObjectStore
    # ------------------------------------------------------------------

    def get(self, path: str) -> Optional[bytes]:
        """
        Return the stage-0 blob for ``path`` from the index.

        Missing, conflicted or unreadable entries count as "nothing staged".
        """

        try:
            index = self._repo.open_index()
        except (NoIndexPresent, OSError, ValueError) as e:
            log.debug("Cannot open index: %s", e)
            return None

        try:
            entry = index[os.fsencode(path)]
        except KeyError:
            return None

        sha = getattr(entry, "sha", None)
        if sha is None:
            # conflicted entries carry no single sha
            return None

        try:
            return self._repo.object_store[sha].as_raw_string()
        except KeyError:
            log.debug("Staged object %s for %s missing from object store", sha, path)
            return None
