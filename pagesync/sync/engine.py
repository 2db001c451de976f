"""Sync engine — reconcile deployments against source repositories.

Two passes share one lock so they never touch the deployment tree at the
same time:

1. Full sync: enumerate both trees, remove deployments whose repository or
   publish branch is gone, then re-materialize every repository that has
   the branch.
2. Single-repository sync: the fast path run for each push webhook.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol

from pagesync.config import SyncConfig
from pagesync.models.repository import (
    RepoId,
    RepoStatus,
    SyncAction,
    SyncReport,
    SyncRequest,
)
from pagesync.sync.deployment import remove_deployment
from pagesync.utils.dir_scanner import EnumerationError, scan_repositories, scan_two_level
from pagesync.utils.git_ops import BranchState, GitSourceControl

logger = logging.getLogger(__name__)


class SourceControl(Protocol):
    def branch_state(self, git_dir: Path, branch: str) -> BranchState: ...

    def checkout_overlay(self, git_dir: Path, branch: str, dest: Path) -> bool: ...


class SyncEngine:
    """Holds both root paths, the branch name and the reconciliation lock."""

    def __init__(self, config: SyncConfig, source_control: SourceControl | None = None):
        self.config = config
        self.source_control = source_control or GitSourceControl()
        self._lock = threading.Lock()
        self.last_report: SyncReport | None = None

    @property
    def branch(self) -> str:
        return self.config.branch

    def git_dir(self, repo: RepoId) -> Path:
        return self.config.repositories / repo.owner / f"{repo.name}{self.config.repo_suffix}"

    def deploy_dir(self, repo: RepoId) -> Path:
        return self.config.target / repo.owner / repo.name

    # ------------------------------------------------------------------
    # Universes
    # ------------------------------------------------------------------

    def available(self) -> set[RepoId]:
        """Identifiers with a source repository."""
        names = scan_repositories(self.config.repositories, self.config.repo_suffix)
        return _to_ids(names, self.config.repositories)

    def deployed(self) -> set[RepoId]:
        """Identifiers with a deployment directory."""
        return _to_ids(scan_two_level(self.config.target), self.config.target)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def full_sync(self) -> SyncReport:
        """Reconcile every repository and every deployment.

        Raises:
            EnumerationError: If either tree cannot be listed. Nothing has
                been changed on disk in that case.
        """
        report = SyncReport(request=SyncRequest())
        with self._lock:
            logger.info("Doing full sync")
            try:
                available = self.available()
                deployed = self.deployed()
            except EnumerationError as e:
                logger.error("full sync: %s", e)
                report.finish(error=str(e))
                self.last_report = report
                raise

            branch_states: dict[RepoId, BranchState] = {}

            def state_of(repo: RepoId) -> BranchState:
                if repo not in branch_states:
                    branch_states[repo] = self.source_control.branch_state(
                        self.git_dir(repo), self.branch
                    )
                return branch_states[repo]

            # Remove deployments whose repository or branch is gone
            for repo in sorted(deployed):
                if repo not in available:
                    logger.info("full sync: Removing deployment, repo is gone: %s", repo)
                    self._remove(repo, report, "repository is gone")
                elif not state_of(repo).exists:
                    logger.info(
                        "full sync: Removing deployment, repo's %s branch is gone: %s",
                        self.branch,
                        repo,
                    )
                    self._remove(repo, report, f"{self.branch} branch is gone")
                else:
                    logger.info("full sync: ok: %s", repo)
                    report.add(repo, SyncAction.KEPT)

            # Update or create deployments
            for repo in sorted(available):
                if not state_of(repo).exists:
                    report.add(repo, SyncAction.SKIPPED, f"no {self.branch} branch")
                    continue
                self._materialize(repo, report)

            report.finish()
            self.last_report = report
        logger.info(report.summary())
        return report

    def sync_repo(self, repo: RepoId | str) -> SyncReport:
        """Reconcile a single repository, typically after a push webhook."""
        if isinstance(repo, str):
            repo = RepoId.parse(repo)

        report = SyncReport(request=SyncRequest(repo=repo))
        with self._lock:
            git_dir = self.git_dir(repo)
            if not git_dir.is_dir():
                logger.info("Removing deployment, repo is gone: %s", repo)
                self._remove(repo, report, "repository is gone")
            else:
                state = self.source_control.branch_state(git_dir, self.branch)
                if state.exists:
                    self._materialize(repo, report)
                else:
                    logger.info(
                        "Removing deployment, repo's %s branch is %s: %s",
                        self.branch,
                        state.value,
                        repo,
                    )
                    self._remove(repo, report, f"{self.branch} branch is {state.value}")
            report.finish()
            self.last_report = report
        logger.info(report.summary())
        return report

    def status(self) -> list[RepoStatus]:
        """Describe every known identifier without changing anything."""
        with self._lock:
            available = self.available()
            deployed = self.deployed()
            statuses = []
            for repo in sorted(available | deployed):
                has_source = repo in available
                if has_source:
                    state = self.source_control.branch_state(self.git_dir(repo), self.branch)
                else:
                    state = BranchState.UNKNOWN
                statuses.append(
                    RepoStatus(
                        repo=repo,
                        has_source=has_source,
                        branch_state=state.value,
                        deployed=repo in deployed,
                    )
                )
        return statuses

    # ------------------------------------------------------------------
    # Actions (caller holds the lock)
    # ------------------------------------------------------------------

    def _materialize(self, repo: RepoId, report: SyncReport) -> None:
        ok = self.source_control.checkout_overlay(
            self.git_dir(repo), self.branch, self.deploy_dir(repo)
        )
        if ok:
            report.add(repo, SyncAction.DEPLOYED)
        else:
            report.add(repo, SyncAction.FAILED, "checkout failed")

    def _remove(self, repo: RepoId, report: SyncReport, reason: str) -> None:
        if remove_deployment(self.deploy_dir(repo), root=self.config.target):
            report.add(repo, SyncAction.REMOVED, reason)
        else:
            report.add(repo, SyncAction.FAILED, "removal failed")


def _to_ids(names: set[str], root: Path) -> set[RepoId]:
    ids = set()
    for name in names:
        try:
            ids.add(RepoId.parse(name))
        except ValueError:
            logger.warning("Ignoring invalid repository name under %s: %s", root, name)
    return ids
