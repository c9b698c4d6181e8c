# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from collections import deque
from typing import Dict, Iterator, List, Optional, Set

from .errors import GraphValidationError
from .models import PROPERTY_TYPES, Person, VertexKind, VertexProperties

# (from kind, to kind) pairs an edge may connect
ALLOWED_EDGES = {
    (VertexKind.PERSON, VertexKind.RELATIONSHIP),
    (VertexKind.RELATIONSHIP, VertexKind.CHILDHUB),
    (VertexKind.CHILDHUB, VertexKind.PERSON),
}


class Graph:
    """
    The in-memory pedigree graph.

    Vertices are identified by dense integers starting at 0 and are never removed.
    Edges run parent Person -> Relationship -> ChildHub -> child Person, so every
    child of a couple hangs off the couple's single ChildHub.
    """

    def __init__(self):
        self._kinds: List[VertexKind] = []
        self._properties: List[VertexProperties] = []
        self._out_edges: List[Dict[int, int]] = []
        self._in_edges: List[List[int]] = []

    # --- Mutation ---

    def add_vertex(self, kind: VertexKind, properties: Optional[VertexProperties] = None) -> int:
        """Appends a vertex and returns its id."""
        expected = PROPERTY_TYPES[kind]
        if properties is None:
            properties = expected()
        elif not isinstance(properties, expected):
            raise ValueError(f"A {kind.value} vertex needs {expected.__name__} properties, got {type(properties).__name__}")
        self._kinds.append(kind)
        self._properties.append(properties)
        self._out_edges.append({})
        self._in_edges.append([])
        return len(self._kinds) - 1

    def add_edge(self, from_id: int, to_id: int, weight: int = 1):
        """Adds a directed edge after checking that the endpoint kinds may be connected."""
        self._check_id(from_id)
        self._check_id(to_id)
        pair = (self._kinds[from_id], self._kinds[to_id])
        if pair not in ALLOWED_EDGES:
            raise ValueError(f"Cannot add an edge from a {pair[0].value} ({from_id}) to a {pair[1].value} ({to_id})")
        if to_id in self._out_edges[from_id]:
            raise ValueError(f"Edge {from_id} -> {to_id} already exists")
        self._out_edges[from_id][to_id] = weight
        self._in_edges[to_id].append(from_id)

    # --- Vertex queries ---

    def _check_id(self, v: int):
        if not 0 <= v < len(self._kinds):
            raise ValueError(f"Vertex {v} does not exist")

    def size(self) -> int:
        return len(self._kinds)

    def get_max_vertex_id(self) -> int:
        return len(self._kinds) - 1

    def kind(self, v: int) -> VertexKind:
        self._check_id(v)
        return self._kinds[v]

    def is_person(self, v: int) -> bool:
        return 0 <= v < len(self._kinds) and self._kinds[v] == VertexKind.PERSON

    def is_relationship(self, v: int) -> bool:
        return 0 <= v < len(self._kinds) and self._kinds[v] == VertexKind.RELATIONSHIP

    def is_childhub(self, v: int) -> bool:
        return 0 <= v < len(self._kinds) and self._kinds[v] == VertexKind.CHILDHUB

    def properties(self, v: int) -> VertexProperties:
        self._check_id(v)
        return self._properties[v]

    def person(self, v: int) -> Person:
        """Returns the Person record of a person vertex."""
        if not self.is_person(v):
            raise ValueError(f"Vertex {v} is not a person")
        return self._properties[v]

    def persons(self) -> Iterator[int]:
        """Iterates over person ids in ascending order."""
        return (v for v, kind in enumerate(self._kinds) if kind == VertexKind.PERSON)

    def get_out_edges(self, v: int) -> List[int]:
        self._check_id(v)
        return list(self._out_edges[v])

    def get_in_edges(self, v: int) -> List[int]:
        self._check_id(v)
        return list(self._in_edges[v])

    def get_gender(self, v: int) -> str:
        return self.person(v).gender

    def is_adopted(self, v: int) -> bool:
        return self.person(v).is_adopted

    # --- Family structure ---

    def get_parent_relationship(self, v: int) -> Optional[int]:
        """Returns the Relationship whose ChildHub this person hangs off, if any."""
        if not self.is_person(v) or not self._in_edges[v]:
            return None
        childhub = self._in_edges[v][0]
        return self._in_edges[childhub][0] if self._in_edges[childhub] else None

    def get_parents(self, v: int) -> List[int]:
        relationship = self.get_parent_relationship(v)
        if relationship is None:
            return []
        return list(self._in_edges[relationship])

    def get_mother(self, v: int) -> Optional[int]:
        """
        Returns the female parent. An unknown-gender parent counts as the mother
        when the other parent is male.
        """
        return self._parent_by_gender(v, "F", "M")

    def get_father(self, v: int) -> Optional[int]:
        return self._parent_by_gender(v, "M", "F")

    def _parent_by_gender(self, v: int, wanted: str, opposite: str) -> Optional[int]:
        parents = self.get_parents(v)
        for p in parents:
            if self.get_gender(p) == wanted:
                return p
        if len(parents) == 2:
            genders = [self.get_gender(p) for p in parents]
            if opposite in genders and "U" in genders:
                return parents[genders.index("U")]
        return None

    def get_all_relationships(self, v: int) -> List[int]:
        """Relationships this person is a partner in."""
        if not self.is_person(v):
            return []
        return list(self._out_edges[v])

    def get_all_partners(self, v: int) -> List[int]:
        partners = []
        for relationship in self.get_all_relationships(v):
            for p in self._in_edges[relationship]:
                if p != v and p not in partners:
                    partners.append(p)
        return partners

    def get_relationship_node(self, a: int, b: int) -> Optional[int]:
        if not self.is_person(a) or not self.is_person(b):
            return None
        for relationship in self._out_edges[a]:
            if b in self._in_edges[relationship]:
                return relationship
        return None

    def get_childhub(self, relationship: int) -> Optional[int]:
        if not self.is_relationship(relationship):
            raise ValueError(f"Vertex {relationship} is not a relationship")
        hubs = list(self._out_edges[relationship])
        return hubs[0] if hubs else None

    def get_relationship_children(self, relationship: int) -> List[int]:
        childhub = self.get_childhub(relationship)
        return [] if childhub is None else list(self._out_edges[childhub])

    def get_children(self, v: int) -> List[int]:
        children = []
        for relationship in self.get_all_relationships(v):
            children.extend(self.get_relationship_children(relationship))
        return children

    def get_siblings(self, v: int) -> List[int]:
        """Other children of the same couple."""
        relationship = self.get_parent_relationship(v)
        if relationship is None:
            return []
        return [c for c in self.get_relationship_children(relationship) if c != v]

    def get_parent_generations(self, v: int, depth: int) -> Set[int]:
        """Returns all ancestors up to `depth` generations above v, excluding v itself."""
        ancestors: Set[int] = set()
        queue = deque([(v, 0)])
        while queue:
            current, generation = queue.popleft()
            if generation >= depth:
                continue
            for parent in self.get_parents(current):
                if parent not in ancestors:
                    ancestors.add(parent)
                    queue.append((parent, generation + 1))
        return ancestors

    def share_ancestor(self, a: int, b: int, depth: int) -> bool:
        """True when a and b have a common ancestor within `depth` generations."""
        return not self.get_parent_generations(a, depth).isdisjoint(self.get_parent_generations(b, depth))

    # --- Twins ---

    def get_twin_group_id(self, v: int) -> Optional[int]:
        return self.person(v).twin_group

    def get_all_twins_of(self, v: int) -> List[int]:
        """Every person sharing v's twin group, v included."""
        group = self.get_twin_group_id(v)
        if group is None:
            return [v]
        return [p for p in self.persons() if self._properties[p].twin_group == group]

    # --- Validation ---

    def validate(self):
        """Checks every structural invariant and raises GraphValidationError on the first violation."""
        for v, kind in enumerate(self._kinds):
            if kind == VertexKind.PERSON:
                self._validate_person(v)
            elif kind == VertexKind.RELATIONSHIP:
                self._validate_relationship(v)
            else:
                self._validate_childhub(v)
        self._validate_acyclic()

    def _validate_person(self, v: int):
        if len(self._in_edges[v]) > 1:
            raise GraphValidationError(f"Person {v} has {len(self._in_edges[v])} sets of parents")
        for p in self.get_parents(v):
            if p == v:
                raise GraphValidationError(f"Person {v} is their own parent")

    def _validate_relationship(self, v: int):
        partners = self._in_edges[v]
        if len(partners) != 2 or partners[0] == partners[1]:
            raise GraphValidationError(f"Relationship {v} must connect exactly two distinct persons, has {partners}")
        if len(self._out_edges[v]) != 1:
            raise GraphValidationError(f"Relationship {v} must have exactly one child hub, has {len(self._out_edges[v])}")
        a, b = partners
        for other in self._out_edges[a]:
            if other != v and b in self._in_edges[other]:
                raise GraphValidationError(f"Persons {a} and {b} have more than one relationship")

    def _validate_childhub(self, v: int):
        if len(self._in_edges[v]) != 1:
            raise GraphValidationError(f"Child hub {v} must belong to exactly one relationship, has {len(self._in_edges[v])}")

    def _validate_acyclic(self):
        # Kahn's algorithm over person -> child links
        in_degree = {v: len(self.get_parents(v)) for v in self.persons()}
        ready = deque(v for v, degree in in_degree.items() if degree == 0)
        visited = 0
        while ready:
            current = ready.popleft()
            visited += 1
            for child in self.get_children(current):
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    ready.append(child)
        if visited != len(in_degree):
            raise GraphValidationError("The pedigree contains a person who is their own ancestor")
