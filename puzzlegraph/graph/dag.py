"""
Storage-agnostic DAG primitives for prerequisite graphs.

Every function works on an adjacency mapping `{node: prerequisites}` where
an edge points from a node to the nodes that must be completed before it.
Nodes only need to be hashable, so any progression-gated feature (modules,
achievements, lessons) can reuse these checks with its own identifiers.

    adjacency = {"ALGEBRA": ["BASIC_MATH"], "CALCULUS": ["ALGEBRA"]}
    would_create_cycle(adjacency, "BASIC_MATH", "CALCULUS")  # True
    topological_order(["CALCULUS", "ALGEBRA", "BASIC_MATH"], adjacency)
    # ['BASIC_MATH', 'ALGEBRA', 'CALCULUS']
"""
from __future__ import annotations

import heapq
from collections import defaultdict, deque
from collections.abc import Hashable, Iterable, Mapping
from typing import TypeVar

from .exceptions import CyclicDependencyError

Node = TypeVar("Node", bound=Hashable)
Adjacency = Mapping[Node, Iterable[Node]]


def build_adjacency(edges: Iterable[tuple[Node, Node]]) -> dict[Node, list[Node]]:
    """Build `{node: [prerequisites]}` from `(node, prerequisite)` pairs, keeping edge order."""
    adjacency: dict[Node, list[Node]] = defaultdict(list)
    for node, prerequisite in edges:
        adjacency[node].append(prerequisite)
    return dict(adjacency)


def reverse_adjacency(adjacency: Adjacency) -> dict[Node, list[Node]]:
    """Map each prerequisite to the nodes that depend on it."""
    dependents: dict[Node, list[Node]] = defaultdict(list)
    for node, prerequisites in adjacency.items():
        for prerequisite in prerequisites:
            dependents[prerequisite].append(node)
    return dict(dependents)


def find_path(adjacency: Adjacency, start: Node, target: Node) -> list[Node] | None:
    """
    Breadth-first search from `start` along prerequisite edges.

    Returns:
        The shortest node path `[start, ..., target]`, or None if `target`
        is not a direct or transitive prerequisite of `start`.
    """
    if start == target:
        return [start]

    parents: dict[Node, Node] = {}
    visited = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for prerequisite in adjacency.get(current, ()):
            if prerequisite in visited:
                continue
            parents[prerequisite] = current
            if prerequisite == target:
                path = [target]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            visited.add(prerequisite)
            queue.append(prerequisite)
    return None


def is_reachable(adjacency: Adjacency, start: Node, target: Node) -> bool:
    """True if `target` is `start` or one of its direct or transitive prerequisites."""
    return find_path(adjacency, start, target) is not None


def cycle_through(adjacency: Adjacency, puzzle_id: Node, prerequisite_id: Node) -> list[Node] | None:
    """
    The cycle that edge `puzzle_id -> prerequisite_id` would close, if any.

    If `puzzle_id` is already reachable from `prerequisite_id`, the new edge
    closes the loop. The returned witness starts and ends with `puzzle_id`.
    """
    if puzzle_id == prerequisite_id:
        return [puzzle_id, puzzle_id]
    path = find_path(adjacency, prerequisite_id, puzzle_id)
    if path is None:
        return None
    return [puzzle_id, *path]


def would_create_cycle(adjacency: Adjacency, puzzle_id: Node, prerequisite_id: Node) -> bool:
    """True if adding `prerequisite_id` as a prerequisite of `puzzle_id` breaks acyclicity."""
    return cycle_through(adjacency, puzzle_id, prerequisite_id) is not None


def transitive_prerequisites(adjacency: Adjacency, node: Node) -> list[Node]:
    """All direct and indirect prerequisites of `node`, nearest first, without duplicates."""
    seen = {node}
    ordered: list[Node] = []
    queue = deque([node])
    while queue:
        current = queue.popleft()
        for prerequisite in adjacency.get(current, ()):
            if prerequisite not in seen:
                seen.add(prerequisite)
                ordered.append(prerequisite)
                queue.append(prerequisite)
    return ordered


def find_cycle(adjacency: Adjacency) -> list[Node] | None:
    """
    Find one directed cycle, for health checks on stored graphs.

    Iterative three-colour DFS so deep chains do not hit the recursion limit.

    Returns:
        A witness `[a, b, ..., a]` or None when the graph is acyclic.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    colour: dict[Node, int] = defaultdict(int)
    nodes = list(adjacency)
    for prerequisites in adjacency.values():
        nodes.extend(prerequisites)

    for root in nodes:
        if colour[root] != WHITE:
            continue
        stack: list[tuple[Node, Iterable[Node]]] = [(root, iter(adjacency.get(root, ())))]
        trail = [root]
        colour[root] = GREY
        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if colour[child] == GREY:
                    return trail[trail.index(child):] + [child]
                if colour[child] == WHITE:
                    colour[child] = GREY
                    trail.append(child)
                    stack.append((child, iter(adjacency.get(child, ()))))
                    advanced = True
                    break
            if not advanced:
                colour[node] = BLACK
                trail.pop()
                stack.pop()
    return None


def topological_order(nodes: Iterable[Node], adjacency: Adjacency) -> list[Node]:
    """
    Order `nodes` so every prerequisite precedes its dependents (Kahn's algorithm).

    Ties are broken by the position in `nodes`, so the result is stable.
    Edges to nodes outside `nodes` are ignored.

    Raises:
        CyclicDependencyError: If the graph restricted to `nodes` has a cycle.
    """
    nodes = list(dict.fromkeys(nodes))
    position = {node: index for index, node in enumerate(nodes)}

    pending: dict[Node, int] = {}
    for node in nodes:
        pending[node] = len({p for p in adjacency.get(node, ()) if p in position})
    dependents = reverse_adjacency(
        {node: [p for p in dict.fromkeys(adjacency.get(node, ())) if p in position] for node in nodes}
    )

    ready = [position[node] for node in nodes if pending[node] == 0]
    heapq.heapify(ready)
    ordered: list[Node] = []
    while ready:
        node = nodes[heapq.heappop(ready)]
        ordered.append(node)
        for dependent in dependents.get(node, ()):
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, position[dependent])

    if len(ordered) != len(nodes):
        remaining = {node: [p for p in adjacency.get(node, ()) if p in position]
                     for node in nodes if pending[node] > 0}
        cycle = find_cycle(remaining) or []
        first = cycle[0] if cycle else None
        second = cycle[1] if len(cycle) > 1 else None
        raise CyclicDependencyError(first, second, path=cycle)
    return ordered


def unlocked_by(adjacency: Adjacency, completed: Iterable[Node], candidates: Iterable[Node] | None = None) -> set[Node]:
    """
    Nodes that are not completed and whose prerequisites all are.

    Args:
        adjacency: Gating edges only (advisory edges should be left out)
        completed: Nodes the user has finished
        candidates: Restrict the answer to these nodes (defaults to every node
            that has at least one prerequisite)
    """
    done = set(completed)
    pool = adjacency.keys() if candidates is None else candidates
    return {
        node for node in pool
        if node not in done and all(p in done for p in adjacency.get(node, ()))
    }
