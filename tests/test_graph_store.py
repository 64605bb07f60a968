"""Tests for the graph repositories (taskgraph/storage/)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
import yaml

from taskgraph.model import DependencyEdge, Task
from taskgraph.positions import PositionShift
from taskgraph.storage import FileGraphRepository, InMemoryGraphRepository


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".taskgraph"
    d.mkdir()
    return d


@pytest.fixture(params=["memory", "file"])
def repo(request: pytest.FixtureRequest, state_dir: Path):
    if request.param == "memory":
        return InMemoryGraphRepository()
    return FileGraphRepository(state_dir)


# ---------------------------------------------------------------------------
# Behaviour shared by every backend
# ---------------------------------------------------------------------------

class TestRepositoryContract:
    def test_empty_snapshot(self, repo) -> None:
        snapshot = repo.read_snapshot()
        assert snapshot.tasks == []
        assert snapshot.edges == []

    def test_commit_on_clean_exit(self, repo) -> None:
        with repo.transaction() as uow:
            uow.save_task(Task(id="t1", title="First"))
            uow.save_task(Task(id="t2", title="Second"))
            uow.persist_edge(DependencyEdge("t2", "t1"))

        snapshot = repo.read_snapshot()
        assert [t.id for t in snapshot.tasks] == ["t1", "t2"]
        assert [e.key for e in snapshot.edges] == [("t2", "t1")]

    def test_rollback_on_exception(self, repo) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            with repo.transaction() as uow:
                uow.save_task(Task(id="t1"))
                raise RuntimeError("boom")
        assert repo.read_snapshot().tasks == []

    def test_persist_edge_is_idempotent(self, repo) -> None:
        with repo.transaction() as uow:
            uow.save_task(Task(id="a"))
            uow.save_task(Task(id="b"))
            first = uow.persist_edge(DependencyEdge("b", "a"))
            second = uow.persist_edge(DependencyEdge("b", "a"))
            assert second.id == first.id
        assert len(repo.read_snapshot().edges) == 1

    def test_delete_edge(self, repo) -> None:
        with repo.transaction() as uow:
            uow.persist_edge(DependencyEdge("b", "a"))
        with repo.transaction() as uow:
            assert uow.delete_edge("b", "a") is True
            assert uow.delete_edge("b", "a") is False
        assert repo.read_snapshot().edges == []

    def test_list_dependencies(self, repo) -> None:
        with repo.transaction() as uow:
            uow.persist_edge(DependencyEdge("b", "a"))
            uow.persist_edge(DependencyEdge("c", "b"))
            deps = uow.list_dependencies("b")
        assert [e.depends_on_task_id for e in deps.depends_on] == ["a"]
        assert [e.task_id for e in deps.dependents] == ["c"]

    def test_board_filter(self, repo) -> None:
        with repo.transaction() as uow:
            uow.save_task(Task(id="a", board_id="b1"))
            uow.save_task(Task(id="b", board_id="b1"))
            uow.save_task(Task(id="c", board_id="b2"))
            uow.persist_edge(DependencyEdge("b", "a"))
            uow.persist_edge(DependencyEdge("c", "a"))
        snapshot = repo.read_snapshot(board_id="b1")
        assert [t.id for t in snapshot.tasks] == ["a", "b"]
        assert [e.key for e in snapshot.edges] == [("b", "a")]

    def test_shift_positions(self, repo) -> None:
        with repo.transaction() as uow:
            for i, tid in enumerate(["a", "b", "c"], start=1):
                uow.save_task(Task(id=tid, column_id="col", position=i))
        with repo.transaction() as uow:
            assert uow.shift_positions(PositionShift("col", 1, 2)) == 2
            uow.set_position("n", "col", 2)  # unknown task is ignored
        positions = {t.id: t.position for t in repo.read_snapshot().tasks}
        assert positions == {"a": 1, "b": 3, "c": 4}

    def test_update_task_progress(self, repo) -> None:
        with repo.transaction() as uow:
            uow.save_task(Task(id="a"))
        with repo.transaction() as uow:
            uow.update_task_progress("a", 60)
        assert repo.read_snapshot().tasks[0].progress == 60

    def test_snapshot_is_a_copy(self, repo) -> None:
        with repo.transaction() as uow:
            uow.save_task(Task(id="a", title="orig"))
        repo.read_snapshot().tasks[0].title = "changed"
        assert repo.read_snapshot().tasks[0].title == "orig"


# ---------------------------------------------------------------------------
# File backend specifics
# ---------------------------------------------------------------------------

class TestFileGraphRepository:
    def test_persists_across_instances(self, state_dir: Path) -> None:
        with FileGraphRepository(state_dir).transaction() as uow:
            uow.save_task(Task(id="t1", title="Stored"))
            uow.persist_edge(DependencyEdge("t1", "t0"))

        snapshot = FileGraphRepository(state_dir).read_snapshot()
        assert snapshot.tasks[0].title == "Stored"
        assert snapshot.edges[0].key == ("t1", "t0")

    def test_store_layout(self, state_dir: Path) -> None:
        repo = FileGraphRepository(state_dir)
        with repo.transaction() as uow:
            uow.save_task(Task(id="t1"))
        data = yaml.safe_load(repo.store_path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["tasks"][0]["id"] == "t1"
        assert data["edges"] == []
        assert not (state_dir / "graph.yaml.tmp").exists()

    def test_read_only_transaction_does_not_write(self, state_dir: Path) -> None:
        repo = FileGraphRepository(state_dir)
        with repo.transaction() as uow:
            uow.list_tasks()
        assert not repo.store_path.exists()

    def test_corrupt_store_refused(self, state_dir: Path) -> None:
        (state_dir / "graph.yaml").write_text("tasks: [broken\n", encoding="utf-8")
        repo = FileGraphRepository(state_dir)
        with pytest.raises(RuntimeError, match="Cannot read graph store"):
            repo.read_snapshot()

    def test_creates_missing_state_dir(self, tmp_path: Path) -> None:
        repo = FileGraphRepository(tmp_path / "fresh" / ".taskgraph")
        with repo.transaction() as uow:
            uow.save_task(Task(id="t1"))
        assert repo.store_path.exists()

    def test_concurrent_transactions(self, state_dir: Path) -> None:
        repo = FileGraphRepository(state_dir)
        errors: list[Exception] = []

        def _add(i: int) -> None:
            try:
                with repo.transaction() as uow:
                    uow.save_task(Task(id=f"t{i}"))
            except Exception as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=_add, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(repo.read_snapshot().tasks) == 10
