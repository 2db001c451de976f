"""Tests for the sync engine (full and single-repository reconciliation)."""

import tempfile
import threading
from pathlib import Path

import pytest

from fakes import FakeSourceControl, make_deployment, make_source, snapshot
from pagesync.config import SyncConfig
from pagesync.models.repository import RepoId, SyncAction
from pagesync.sync.engine import SyncEngine
from pagesync.utils.dir_scanner import EnumerationError


def _engine(tmpdir: str, fake: FakeSourceControl) -> tuple[SyncEngine, Path, Path]:
    repos = Path(tmpdir) / "repositories"
    target = Path(tmpdir) / "target"
    repos.mkdir()
    target.mkdir()
    config = SyncConfig(repositories=repos, target=target, token="secret")
    return SyncEngine(config, source_control=fake), repos, target


# --- Full sync ---


def test_full_sync_creates_missing_deployment():
    fake = FakeSourceControl({"alice/blog": {"index.html": "hello", "css/site.css": "body{}"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "alice/blog")

        report = engine.full_sync()

        assert snapshot(target / "alice" / "blog") == {
            "css/site.css": "body{}",
            "index.html": "hello",
        }
        assert report.actions_for(RepoId("alice", "blog")) == [SyncAction.DEPLOYED]
        assert report.ok


def test_full_sync_removes_deployment_when_branch_deleted():
    fake = FakeSourceControl({})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "bob/site")
        make_deployment(target, "bob/site")

        report = engine.full_sync()

        assert not (target / "bob" / "site").exists()
        # Removal pass removes it, refresh pass skips it
        assert report.actions_for(RepoId("bob", "site")) == [
            SyncAction.REMOVED,
            SyncAction.SKIPPED,
        ]


def test_full_sync_removes_deployment_when_repo_gone():
    fake = FakeSourceControl({"eve/www": {"index.html": "x"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_deployment(target, "eve/www")

        report = engine.full_sync()

        assert not (target / "eve").exists()
        assert report.actions_for(RepoId("eve", "www")) == [SyncAction.REMOVED]
        # Only removal: the branch was never checked or checked out
        assert all(name != "eve/www" for _, name in fake.operations)


def test_full_sync_unknown_branch_state_counts_as_absent():
    fake = FakeSourceControl({"frank/docs": {"index.html": "x"}})
    fake.unknown.add("frank/docs")
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "frank/docs")
        make_deployment(target, "frank/docs")

        engine.full_sync()

        assert not (target / "frank" / "docs").exists()


def test_full_sync_refreshes_existing_deployment():
    fake = FakeSourceControl({"alice/blog": {"index.html": "new"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "alice/blog")
        make_deployment(target, "alice/blog", {"index.html": "old", "stale.html": "gone"})

        report = engine.full_sync()

        assert snapshot(target / "alice" / "blog") == {"index.html": "new"}
        assert report.actions_for(RepoId("alice", "blog")) == [
            SyncAction.KEPT,
            SyncAction.DEPLOYED,
        ]


def test_full_sync_ignores_non_bare_names_and_files():
    fake = FakeSourceControl({"alice/blog": {"index.html": "x"}, "alice/notes": {"a": "b"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "alice/blog")
        make_source(repos, "alice/notes", suffix="")  # no .git suffix
        (repos / "README").write_text("not a directory")
        (repos / "alice" / "stray.git").write_text("not a directory either")

        engine.full_sync()

        assert (target / "alice" / "blog" / "index.html").exists()
        assert not (target / "alice" / "notes").exists()
        assert not (target / "alice" / "stray").exists()


def test_full_sync_is_idempotent():
    fake = FakeSourceControl({
        "alice/blog": {"index.html": "hello"},
        "carol/docs": {"index.html": "docs", "api/index.html": "api"},
    })
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "alice/blog")
        make_source(repos, "carol/docs")
        make_source(repos, "bob/nobranch")
        make_deployment(target, "gone/site")

        engine.full_sync()
        first = snapshot(target)
        second_report = engine.full_sync()

        assert snapshot(target) == first
        assert second_report.count(SyncAction.REMOVED) == 0
        assert second_report.count(SyncAction.FAILED) == 0


def test_full_sync_converges_to_repos_with_branch():
    fake = FakeSourceControl({
        "a/one": {"index.html": "1"},
        "a/two": {"index.html": "2"},
        "b/three": {"index.html": "3"},
    })
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        for name in ("a/one", "a/two", "b/three", "b/four"):
            make_source(repos, name)
        for name in ("a/two", "b/four", "c/five"):
            make_deployment(target, name)

        engine.full_sync()
        assert engine.deployed() == {RepoId("a", "one"), RepoId("a", "two"), RepoId("b", "three")}

        # Branch deleted on one repo, another repo deleted
        del fake.branches["a/one"]
        (repos / "b" / "three.git").rmdir()
        engine.full_sync()
        assert engine.deployed() == {RepoId("a", "two")}


def test_full_sync_checkout_failure_does_not_abort_pass():
    fake = FakeSourceControl({"a/bad": {"index.html": "x"}, "b/good": {"index.html": "y"}})
    fake.broken.add("a/bad")
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "a/bad")
        make_source(repos, "b/good")

        report = engine.full_sync()

        assert (target / "b" / "good" / "index.html").read_text() == "y"
        assert report.actions_for(RepoId("a", "bad")) == [SyncAction.FAILED]
        assert not report.ok


def test_full_sync_removal_failure_does_not_abort_pass(monkeypatch):
    monkeypatch.setattr("pagesync.sync.engine.remove_deployment", lambda *a, **kw: False)
    fake = FakeSourceControl({"b/good": {"index.html": "y"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "b/good")
        make_deployment(target, "a/gone")

        report = engine.full_sync()

        assert report.actions_for(RepoId("a", "gone")) == [SyncAction.FAILED]
        assert report.actions_for(RepoId("b", "good")) == [SyncAction.DEPLOYED]


def test_full_sync_enumeration_failure_aborts_pass():
    fake = FakeSourceControl({"alice/blog": {"index.html": "x"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "alice/blog")
        target.rmdir()

        with pytest.raises(EnumerationError):
            engine.full_sync()

        assert fake.operations == []
        assert engine.last_report is not None
        assert engine.last_report.error


# --- Single-repository sync ---


def test_sync_repo_materializes_when_repo_present():
    fake = FakeSourceControl({"carol/docs": {"index.html": "docs"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "carol/docs")

        report = engine.sync_repo("carol/docs")

        assert (target / "carol" / "docs" / "index.html").read_text() == "docs"
        assert report.actions_for(RepoId("carol", "docs")) == [SyncAction.DEPLOYED]


def test_sync_repo_removes_when_repo_absent():
    fake = FakeSourceControl({})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_deployment(target, "dora/old")

        report = engine.sync_repo(RepoId("dora", "old"))

        assert not (target / "dora" / "old").exists()
        assert report.actions_for(RepoId("dora", "old")) == [SyncAction.REMOVED]


def test_sync_repo_removes_when_branch_deleted():
    fake = FakeSourceControl({})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "bob/site")
        make_deployment(target, "bob/site")

        engine.sync_repo("bob/site")

        assert not (target / "bob" / "site").exists()
        assert ("start", "bob/site") not in fake.operations


def test_sync_repo_absent_everywhere_is_a_noop():
    fake = FakeSourceControl({})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)

        report = engine.sync_repo("nobody/nothing")

        assert report.actions_for(RepoId("nobody", "nothing")) == [SyncAction.REMOVED]
        assert list(target.iterdir()) == []


def test_sync_repo_rejects_malformed_name():
    fake = FakeSourceControl({})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, _, _ = _engine(tmpdir, fake)
        with pytest.raises(ValueError):
            engine.sync_repo("../../etc")


# --- Mutual exclusion ---


def test_full_and_single_sync_never_interleave():
    names = [f"owner/repo{i}" for i in range(4)]
    fake = FakeSourceControl({n: {"index.html": n} for n in names}, delay=0.02)
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        for name in names:
            make_source(repos, name)

        threads = [threading.Thread(target=engine.full_sync)]
        threads += [threading.Thread(target=engine.sync_repo, args=(n,)) for n in names]
        threads.append(threading.Thread(target=engine.full_sync))
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert not fake.overlapped
        checkouts = [op for op in fake.operations if op[0] in ("start", "end")]
        # Every start is immediately followed by its own end
        for start, end in zip(checkouts[::2], checkouts[1::2]):
            assert start[0] == "start" and end == ("end", start[1])
        assert engine.deployed() == {RepoId.parse(n) for n in names}


# --- Status ---


def test_status_reports_both_trees():
    fake = FakeSourceControl({"alice/blog": {"index.html": "x"}})
    with tempfile.TemporaryDirectory() as tmpdir:
        engine, repos, target = _engine(tmpdir, fake)
        make_source(repos, "alice/blog")
        make_source(repos, "bob/site")
        make_deployment(target, "bob/site")

        statuses = {str(s.repo): s for s in engine.status()}

        assert statuses["alice/blog"].branch_state == "present"
        assert not statuses["alice/blog"].in_sync
        assert statuses["bob/site"].branch_state == "absent"
        assert statuses["bob/site"].deployed
        assert not statuses["bob/site"].in_sync
