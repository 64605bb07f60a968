"""YAML file-backed graph repository.

Tasks and edges live in one ``graph.yaml`` inside the ``.taskgraph/`` state
directory.  Every transaction holds an exclusive :class:`filelock.FileLock`
(plus a thread lock), loads the file, yields a unit of work and writes the
file back atomically when the block exits cleanly.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from filelock import FileLock
from loguru import logger

from ..constants import LOCK_FILE, LOCK_TIMEOUT_SECONDS, STORE_FILE
from ..io_utils import _atomic_write_yaml, _load_yaml_with_error
from ..model import DependencyEdge, Task
from .interfaces import GraphRepository, GraphSnapshot
from .memory import InMemoryUnitOfWork

STORE_VERSION = 1


class FileGraphRepository(GraphRepository):
    """Thread- and process-safe repository persisted as YAML.

    Parameters
    ----------
    state_dir:
        Path to the ``.taskgraph/`` directory.
    """

    def __init__(self, state_dir: Path, *, lock_timeout: float = LOCK_TIMEOUT_SECONDS) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / STORE_FILE
        self._file_lock = FileLock(str(state_dir / LOCK_FILE), timeout=lock_timeout)
        self._thread_lock = threading.RLock()

    @property
    def store_path(self) -> Path:
        return self._store_path

    # -- internal helpers ---------------------------------------------------

    def _load(self) -> tuple[list[Task], list[DependencyEdge]]:
        data, err = _load_yaml_with_error(self._store_path, {})
        if err:
            # Refuse to continue rather than overwrite a corrupted store.
            raise RuntimeError(f"Cannot read graph store: {err}")
        tasks = [Task.from_dict(d) for d in data.get("tasks") or [] if isinstance(d, dict)]
        edges = [DependencyEdge.from_dict(d) for d in data.get("edges") or [] if isinstance(d, dict)]
        return tasks, edges

    def _save(self, tasks: list[Task], edges: list[DependencyEdge]) -> None:
        payload: dict[str, Any] = {
            "version": STORE_VERSION,
            "tasks": [t.to_dict() for t in tasks],
            "edges": [e.to_dict() for e in edges],
        }
        _atomic_write_yaml(self._store_path, payload)

    # -- public API ---------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[InMemoryUnitOfWork]:
        """Acquire the locks, load the graph, yield a unit of work, save on exit.

        Usage::

            with repo.transaction() as uow:
                uow.persist_edge(DependencyEdge("task-b", "task-a"))
                # written to disk on exit
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        with self._thread_lock, self._file_lock:
            tasks, edges = self._load()
            uow = InMemoryUnitOfWork(tasks, edges)
            yield uow
            if uow.dirty:
                self._save(uow.tasks, uow.edges)
                logger.debug("Saved {} task(s), {} edge(s) to {}", len(uow.tasks), len(uow.edges), self._store_path)

    def read_snapshot(self, *, board_id: Optional[str] = None) -> GraphSnapshot:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        with self._thread_lock, self._file_lock:
            tasks, edges = self._load()
        uow = InMemoryUnitOfWork(tasks, edges)
        return GraphSnapshot(tasks=uow.list_tasks(board_id=board_id), edges=uow.list_edges(board_id=board_id))
