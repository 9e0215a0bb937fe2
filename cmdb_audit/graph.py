"""Directed multigraph view of a dataset snapshot."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .dataset import DatasetSnapshot
from .models import CI, Relationship, is_blank_id

EdgeFilter = Callable[[Relationship], bool]


@dataclass(frozen=True)
class DanglingRelationship:
    """A relationship with at least one endpoint missing from the CI collection."""

    relationship: Relationship
    missing_ids: Tuple[Optional[str], ...]


@dataclass(frozen=True)
class Cycle:
    """A directed cycle found in the graph.

    ``path`` lists the CI ids in traversal order starting at the node the back
    edge points to; ``closing_edge`` is that back edge.
    """

    path: Tuple[str, ...]
    closing_edge: Relationship

    @property
    def members(self) -> Tuple[str, ...]:
        """Sorted participating CI ids; two cycles with the same members are the same cycle."""

        return tuple(sorted(set(self.path)))

    def describe(self) -> str:
        return " -> ".join(self.path + (self.path[0],))


WHITE, GRAY, BLACK = 0, 1, 2


class RelationshipGraph:
    """Graph whose nodes are CI ids and whose edges are relationships.

    Relationships pointing at ids absent from the CI collection are kept in
    :attr:`dangling` instead of becoming edges. The graph is built once per
    validation pass and never mutated afterwards, so rules may share it across
    threads.
    """

    def __init__(self) -> None:
        self.nodes: Dict[str, CI] = {}
        self.edges: List[Relationship] = []
        self.dangling: List[DanglingRelationship] = []
        self._outgoing: Dict[str, List[Relationship]] = {}
        self._incoming: Dict[str, List[Relationship]] = {}
        self._touched: Set[str] = set()

    @classmethod
    def build(cls, snapshot: DatasetSnapshot) -> "RelationshipGraph":
        graph = cls()
        for ci in snapshot.configuration_items:
            if is_blank_id(ci.id) or ci.id in graph.nodes:
                continue
            graph.nodes[ci.id] = ci
            graph._outgoing[ci.id] = []
            graph._incoming[ci.id] = []

        for relationship in snapshot.relationships:
            source, target = relationship.source_id, relationship.target_id
            missing = tuple(
                endpoint for endpoint in (source, target) if endpoint not in graph.nodes
            )
            if missing:
                graph.dangling.append(DanglingRelationship(relationship, missing))
                graph._touched.update(
                    endpoint for endpoint in (source, target) if endpoint in graph.nodes
                )
                continue
            graph.edges.append(relationship)
            graph._outgoing[source].append(relationship)
            graph._incoming[target].append(relationship)
        return graph

    def __contains__(self, ci_id: object) -> bool:
        return ci_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def outgoing(self, ci_id: str) -> Tuple[Relationship, ...]:
        return tuple(self._outgoing.get(ci_id, ()))

    def incoming(self, ci_id: str) -> Tuple[Relationship, ...]:
        return tuple(self._incoming.get(ci_id, ()))

    def degree(self, ci_id: str) -> int:
        return len(self._outgoing.get(ci_id, ())) + len(self._incoming.get(ci_id, ()))

    def is_isolated(self, ci_id: str) -> bool:
        """True when no relationship, valid or dangling, touches *ci_id*."""

        return self.degree(ci_id) == 0 and ci_id not in self._touched

    def find_cycles(self, edge_filter: Optional[EdgeFilter] = None) -> List[Cycle]:
        """Return one :class:`Cycle` per distinct member set, in discovery order.

        Uses an iterative three-colour depth-first search so deep graphs do not
        hit the interpreter recursion limit. Roots are visited in CI insertion
        order and edges in relationship order, which makes the result
        deterministic for a given snapshot.
        """

        accept = edge_filter or (lambda _relationship: True)
        color: Dict[str, int] = {node: WHITE for node in self.nodes}
        cycles: List[Cycle] = []
        seen: Set[Tuple[str, ...]] = set()

        for root in self.nodes:
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            path: List[str] = [root]
            position: Dict[str, int] = {root: 0}
            stack: List[Tuple[str, Iterable[Relationship]]] = [
                (root, iter(self._outgoing[root]))
            ]
            while stack:
                node, edges = stack[-1]
                advanced = False
                for relationship in edges:
                    if not accept(relationship):
                        continue
                    target = relationship.target_id
                    state = color[target]
                    if state == WHITE:
                        color[target] = GRAY
                        position[target] = len(path)
                        path.append(target)
                        stack.append((target, iter(self._outgoing[target])))
                        advanced = True
                        break
                    if state == GRAY:
                        cycle = self._canonical_cycle(path[position[target]:], accept)
                        if cycle.members not in seen:
                            seen.add(cycle.members)
                            cycles.append(cycle)
                if advanced:
                    continue
                stack.pop()
                path.pop()
                del position[node]
                color[node] = BLACK
        return cycles

    def _canonical_cycle(self, path: List[str], accept: EdgeFilter) -> Cycle:
        # Rotate so the smallest id comes first; the reported path then does not
        # depend on which node the traversal entered the cycle from.
        start = path.index(min(path))
        rotated = tuple(path[start:] + path[:start])
        closing = next(
            rel
            for rel in self._outgoing[rotated[-1]]
            if rel.target_id == rotated[0] and accept(rel)
        )
        return Cycle(rotated, closing)


__all__ = ["Cycle", "DanglingRelationship", "EdgeFilter", "RelationshipGraph"]
