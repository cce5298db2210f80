from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType

from .task import Task
from .types import CycleError, DuplicateIdError, UnknownDependencyError


class _Visit(Enum):
    UNVISITED = auto()
    VISITING = auto()
    VISITED = auto()


@dataclass(frozen=True)
class TaskGraph:
    """Validated, immutable dependency graph.

    Only build instances through :meth:`build`; it guarantees every
    dependency exists and the dependency relation is acyclic.
    """

    tasks: Mapping[str, Task]
    _deps: Mapping[str, tuple[str, ...]]
    _dependents: Mapping[str, tuple[str, ...]]

    @classmethod
    def build(cls, tasks: Iterable[Task]) -> TaskGraph:
        by_id: dict[str, Task] = {}
        for t in tasks:
            if t.id in by_id:
                raise DuplicateIdError(t.id)
            by_id[t.id] = t

        deps: dict[str, tuple[str, ...]] = {}
        for task_id in sorted(by_id):
            for dep in sorted(by_id[task_id].depends_on):
                if dep not in by_id:
                    raise UnknownDependencyError(task_id, dep)
            deps[task_id] = tuple(sorted(by_id[task_id].depends_on))

        _check_acyclic(deps)

        dependents: dict[str, list[str]] = {tid: [] for tid in deps}
        for task_id, task_deps in deps.items():
            for dep in task_deps:
                dependents[dep].append(task_id)

        return cls(
            MappingProxyType(by_id),
            MappingProxyType(deps),
            MappingProxyType({tid: tuple(sorted(d)) for tid, d in dependents.items()}),
        )

    def __len__(self) -> int:
        return len(self.tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.tasks

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.tasks))

    def get(self, task_id: str) -> Task:
        if task_id not in self.tasks:
            raise KeyError(task_id)
        return self.tasks[task_id]

    def dependencies_of(self, task_id: str) -> tuple[str, ...]:
        return self._deps[task_id]

    def dependents_of(self, task_id: str) -> tuple[str, ...]:
        return self._dependents[task_id]

    def roots(self) -> list[str]:
        return [tid for tid in sorted(self._deps) if not self._deps[tid]]

    def topo_order(self) -> list[str]:
        return _toposort(self._deps, set(self._deps))

    def subgraph(self, target: str) -> TaskGraph:
        """Graph restricted to ``target`` and its transitive dependencies."""
        if target not in self._deps:
            raise KeyError(target)

        needed: set[str] = set()
        worklist: list[str] = [target]

        while worklist:
            task_id = worklist.pop()
            if task_id in needed:
                continue
            needed.add(task_id)
            for dep in self._deps[task_id]:
                worklist.append(dep)

        return TaskGraph.build(self.tasks[tid] for tid in sorted(needed))


def _check_acyclic(deps: Mapping[str, tuple[str, ...]]) -> None:
    _toposort(deps, set(deps))


def _toposort(deps: Mapping[str, tuple[str, ...]], universe: set[str]) -> list[str]:
    """Post-order DFS over dependencies, roots taken in sorted id order.

    Uses an explicit frame stack, so chain depth is not bounded by the
    interpreter's recursion limit.
    """
    state = {tid: _Visit.UNVISITED for tid in universe}
    out: list[str] = []
    path: list[str] = []
    pos: dict[str, int] = {}
    frames: list[tuple[str, Iterator[str]]] = []

    def enter(tid: str) -> None:
        state[tid] = _Visit.VISITING
        pos[tid] = len(path)
        path.append(tid)
        frames.append((tid, iter(deps[tid])))

    for root in sorted(universe):
        if state[root] != _Visit.UNVISITED:
            continue

        enter(root)
        while frames:
            tid, pending = frames[-1]
            for dep in pending:
                if dep not in state:
                    continue
                if state[dep] == _Visit.VISITING:
                    raise CycleError(path[pos[dep] :] + [dep])
                if state[dep] == _Visit.UNVISITED:
                    enter(dep)
                    break
            else:
                frames.pop()
                path.pop()
                pos.pop(tid)
                state[tid] = _Visit.VISITED
                out.append(tid)

    return out
