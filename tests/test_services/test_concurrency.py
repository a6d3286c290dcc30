"""
Concurrency tests: interleaved mutations must not jointly introduce a cycle.
"""
import threading

import pytest

from taskgraph.exceptions import CircularDependencyError, ServiceError
from taskgraph.services.dependency_service import TaskDependencyService
from taskgraph.storage.locks import ProjectLockManager


class TestProjectLockManager:
    """Tests for ProjectLockManager."""

    def test_hold_sorts_and_deduplicates(self):
        locks = ProjectLockManager()
        with locks.hold(3, 1, 3, None) as held:
            assert held == [1, 3]

    def test_reentrant(self):
        locks = ProjectLockManager()
        with locks.hold(1):
            with locks.hold(1, 2) as held:
                assert held == [1, 2]

    def test_blocks_other_threads(self):
        locks = ProjectLockManager()
        acquired = threading.Event()
        release = threading.Event()
        entered_second = []

        def holder():
            with locks.hold(1):
                acquired.set()
                release.wait(5)

        def contender():
            with locks.hold(1):
                entered_second.append(True)

        t1 = threading.Thread(target=holder)
        t1.start()
        acquired.wait(5)
        t2 = threading.Thread(target=contender)
        t2.start()
        t2.join(0.2)
        assert entered_second == []
        release.set()
        t1.join(5)
        t2.join(5)
        assert entered_second == [True]


class TestConcurrentDependencyCreation:
    """Two threads racing opposite edges never both succeed."""

    @pytest.mark.parametrize("attempt", range(5))
    def test_opposite_edges_race(self, store, attempt):
        service = TaskDependencyService(store)
        a = store.create_task(project_id=1)
        b = store.create_task(project_id=1)
        barrier = threading.Barrier(2)
        outcomes = {}

        def create(name, dependent, blocking):
            barrier.wait(5)
            try:
                service.create_dependency(dependent, blocking)
                outcomes[name] = "ok"
            except ServiceError as e:
                outcomes[name] = type(e).__name__

        threads = [
            threading.Thread(target=create, args=("ab", b, a)),
            threading.Thread(target=create, args=("ba", a, b)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert sorted(outcomes.values()) == ["CircularDependencyError", "ok"]
        assert service.generate_dependency_graph(1).cycles == []

    def test_concurrent_chain_closing(self, store):
        """Many threads each add one edge of a ring; the ring never closes."""
        service = TaskDependencyService(store)
        size = 6
        ids = [store.create_task(project_id=1) for _ in range(size)]
        barrier = threading.Barrier(size)
        errors = []

        def create(i):
            barrier.wait(5)
            try:
                service.create_dependency(ids[(i + 1) % size], ids[i])
            except CircularDependencyError as e:
                errors.append(e)

        threads = [threading.Thread(target=create, args=(i,)) for i in range(size)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert len(errors) == 1
        assert len(service.list_dependencies()) == size - 1
        assert service.generate_dependency_graph(1).cycles == []
