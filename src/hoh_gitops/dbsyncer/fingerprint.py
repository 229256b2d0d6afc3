"""Repository change detection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from hoh_gitops.exceptions import FingerprintError


class Fingerprinter(ABC):
    """Produce an opaque, comparable identifier of a repository's state."""

    @abstractmethod
    def fingerprint(self, repo_path: Path) -> str:
        """Return the current fingerprint or raise :class:`FingerprintError`."""


class GitCommitFingerprinter(Fingerprinter):
    """Fingerprint a git working tree by the commit its HEAD points at."""

    def fingerprint(self, repo_path: Path) -> str:
        try:
            with Repo(repo_path) as repo:
                return repo.head.commit.hexsha
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise FingerprintError(f"failed to open local git repo {repo_path}") from exc
        except (GitCommandError, ValueError) as exc:
            # ValueError: HEAD does not reference a commit yet
            raise FingerprintError(
                f"failed to get commit of head in {repo_path}: {exc}"
            ) from exc
