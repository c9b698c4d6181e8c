# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import Dict, FrozenSet

from .errors import StructuralImportError
from .graph import Graph
from .models import VertexKind


class RelationshipTracker:
    """
    Hands out the Relationship/ChildHub pair for an unordered pair of persons,
    creating both vertices together the first time the pair is seen.
    This is the only way importers add couples to a graph, which keeps the
    one-relationship-per-pair invariant without callers having to check.
    """

    def __init__(self, graph: Graph, default_edge_weight: int = 1):
        self.graph = graph
        self.default_edge_weight = default_edge_weight
        self._relationships: Dict[FrozenSet[int], int] = {}
        for v in range(graph.size()):
            if graph.is_relationship(v):
                self._relationships[frozenset(graph.get_in_edges(v))] = v

    def create_or_get_relationship(self, a: int, b: int) -> int:
        """Returns the Relationship vertex joining a and b."""
        if a == b:
            raise StructuralImportError(f"a person cannot be in a relationship with themselves ({a})")
        for person in (a, b):
            if not self.graph.is_person(person):
                raise ValueError(f"Vertex {person} is not a person")
        key = frozenset((a, b))
        relationship = self._relationships.get(key)
        if relationship is None:
            relationship = self.graph.add_vertex(VertexKind.RELATIONSHIP)
            self.graph.add_edge(a, relationship, self.default_edge_weight)
            self.graph.add_edge(b, relationship, self.default_edge_weight)
            childhub = self.graph.add_vertex(VertexKind.CHILDHUB)
            self.graph.add_edge(relationship, childhub, self.default_edge_weight)
            self._relationships[key] = relationship
        return relationship

    def create_or_get_childhub(self, mother_id: int, father_id: int) -> int:
        """Returns the ChildHub of the couple, the only place their children attach."""
        relationship = self.create_or_get_relationship(mother_id, father_id)
        return self.graph.get_childhub(relationship)
