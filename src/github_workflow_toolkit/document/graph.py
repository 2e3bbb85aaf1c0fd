"""Job dependency graph helpers (`needs:` edges)."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from .errors import CyclicDependency
from .model import Job


def dependency_edges(jobs: Iterable[Job]) -> dict[str, tuple[str, ...]]:
    """Map each job id to the ids it needs, in declaration order."""

    return {job.id: job.needs for job in jobs}


def unknown_needs(edges: Mapping[str, Sequence[str]]) -> list[tuple[str, str]]:
    """Return (job, missing dependency) pairs, in declaration order."""

    missing: list[tuple[str, str]] = []
    for job_id, needs in edges.items():
        for dep in needs:
            if dep not in edges:
                missing.append((job_id, dep))
    return missing


def topological_order(edges: Mapping[str, Sequence[str]]) -> list[str]:
    """Order job ids so every job comes after the jobs it needs.

    Ties are broken by declaration order so the result is stable. Raises
    `CyclicDependency` naming one cycle when the graph is not a DAG.
    Dependencies on unknown jobs are ignored here.
    """

    position = {job_id: index for index, job_id in enumerate(edges)}
    children: dict[str, list[str]] = {job_id: [] for job_id in edges}
    indeg: dict[str, int] = {job_id: 0 for job_id in edges}

    for job_id, needs in edges.items():
        for dep in dict.fromkeys(needs):
            if dep not in edges:
                continue
            children[dep].append(job_id)
            indeg[job_id] += 1

    queue = deque(job_id for job_id in edges if indeg[job_id] == 0)
    order: list[str] = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for child in sorted(children[node], key=position.__getitem__):
            indeg[child] -= 1
            if indeg[child] == 0:
                queue.append(child)

    if len(order) != len(edges):
        stuck = [job_id for job_id in edges if indeg[job_id] > 0]
        raise CyclicDependency(find_cycle(edges, among=stuck) or tuple(stuck))

    return order


def find_cycle(
    edges: Mapping[str, Sequence[str]], among: Iterable[str] | None = None
) -> tuple[str, ...] | None:
    """Return the jobs of one dependency cycle, or None.

    The cycle is reported in dependency order starting from its first job in
    declaration order: ``(a, b, c)`` means a needs b, b needs c, c needs a.
    """

    candidates = list(edges) if among is None else [j for j in edges if j in set(among)]
    allowed = set(candidates)

    # Iterative DFS with colouring; declaration order keeps the result stable.
    state: dict[str, int] = {}
    for start in candidates:
        if state.get(start):
            continue
        stack: list[tuple[str, int]] = [(start, 0)]
        path: list[str] = []
        while stack:
            node, next_index = stack.pop()
            if next_index == 0:
                state[node] = 1
                path.append(node)
            deps = [d for d in edges.get(node, ()) if d in allowed]
            if next_index < len(deps):
                stack.append((node, next_index + 1))
                dep = deps[next_index]
                if state.get(dep) == 1:
                    cycle = path[path.index(dep) :]
                    return _rotate_to_first(cycle, list(edges))
                if not state.get(dep):
                    stack.append((dep, 0))
            else:
                state[node] = 2
                path.pop()
    return None


def _rotate_to_first(cycle: list[str], declaration: list[str]) -> tuple[str, ...]:
    first = min(cycle, key=declaration.index)
    index = cycle.index(first)
    return tuple(cycle[index:] + cycle[:index])
