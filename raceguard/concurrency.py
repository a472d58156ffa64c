"""
Concurrency tracking: which functions run as concurrent units and where
each one was spawned.

The tracker is filled in by the alias construction scan (see
``AliasResolver.scan``) and only queried afterwards. Creation edges
between functions are kept in a networkx multigraph keyed by edge kind so
that closure nesting and spawn sites can be inspected independently.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import networkx as nx

from .program import Function, FunctionRef

logger = logging.getLogger(__name__)

SPAWN_EDGE = "spawn"
CLOSURE_EDGE = "closure"


@dataclass(frozen=True)
class CreationRecord:
    """Where a concurrent unit was first spawned"""

    creator: FunctionRef
    block: int
    position: Optional[int]

    @property
    def creator_package(self) -> str:
        return self.creator.package

    @property
    def creator_function(self) -> str:
        return self.creator.name


class ConcurrencyTracker:
    """Registry of concurrent units and their creation records"""

    def __init__(self):
        self._units: Dict[FunctionRef, bool] = {}
        self._creators: Dict[FunctionRef, CreationRecord] = {}
        self.creation_graph = nx.MultiDiGraph()

    def register_spawn(
        self,
        callee: FunctionRef,
        creator: FunctionRef,
        block: int,
        position: Optional[int],
    ) -> bool:
        """
        Mark ``callee`` as a concurrent unit spawned from ``creator``.

        Only the first spawn site is kept as the creation record; later
        sites still add a spawn edge to the creation graph.

        Returns:
            True if this call created the creation record
        """
        self._units[callee] = True
        self.creation_graph.add_edge(creator, callee, key=SPAWN_EDGE)
        if callee in self._creators:
            logger.debug(
                "%s already spawned from %s, ignoring spawn site in %s",
                callee,
                self._creators[callee].creator,
                creator,
            )
            return False
        self._creators[callee] = CreationRecord(creator, block, position)
        logger.debug("Concurrent unit %s spawned by %s at %s", callee, creator, position)
        return True

    def record_closure(self, creator: FunctionRef, closure: FunctionRef) -> None:
        self.creation_graph.add_edge(creator, closure, key=CLOSURE_EDGE)

    def is_concurrent_unit(self, ref: FunctionRef) -> bool:
        return self._units.get(ref, False)

    def creation_record_of(self, ref: FunctionRef) -> Optional[CreationRecord]:
        return self._creators.get(ref)

    @property
    def concurrent_units(self) -> List[FunctionRef]:
        return sorted(self._units)

    def spawned_by(self, creator: FunctionRef) -> List[FunctionRef]:
        """Functions spawned anywhere inside ``creator``"""
        if creator not in self.creation_graph:
            return []
        return sorted(
            callee
            for _, callee, kind in self.creation_graph.out_edges(creator, keys=True)
            if kind == SPAWN_EDGE
        )

    def spawned_before(
        self, unit: FunctionRef, other: FunctionRef, position: Optional[int]
    ) -> Optional[bool]:
        """
        Does an access at ``position`` in ``other`` precede the spawn of ``unit``?

        Returns None when the question cannot be answered because a position
        is missing, False when ``other`` is not the creator of ``unit`` or the
        access is not strictly earlier than the spawn.
        """
        record = self._creators.get(unit)
        if record is None or record.creator != other:
            return False
        if position is None or record.position is None:
            return None
        return position < record.position

    def closure_scope_order(self, functions: Sequence[Function]) -> List[Function]:
        """
        Order ``functions`` so that every enclosing function precedes the
        closures it creates. Ties keep the incoming order. If the closure
        edges are cyclic the incoming order is returned unchanged.
        """
        rank = {function.ref: i for i, function in enumerate(functions)}
        by_ref = {function.ref: function for function in functions}

        nesting = nx.DiGraph()
        nesting.add_nodes_from(rank)
        for creator, closure, kind in self.creation_graph.edges(keys=True):
            if kind == CLOSURE_EDGE and creator in rank and closure in rank:
                nesting.add_edge(creator, closure)

        try:
            ordered = nx.lexicographical_topological_sort(
                nesting, key=lambda ref: rank[ref]
            )
            return [by_ref[ref] for ref in ordered]
        except nx.NetworkXUnfeasible:
            logger.warning("Cyclic closure nesting, keeping program order")
            return list(functions)
