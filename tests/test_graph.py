# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import pytest

from conftest import add_parents
from py_pedigree_core.errors import GraphValidationError, StructuralImportError
from py_pedigree_core.graph import Graph
from py_pedigree_core.models import ChildHub, Person, Relationship, VertexKind
from py_pedigree_core.relationship_tracker import RelationshipTracker


def test_family_structure_queries(family_graph):
    """The four person family answers parent, sibling and partner queries."""
    assert family_graph.size() == 6
    assert family_graph.get_max_vertex_id() == 5
    assert list(family_graph.persons()) == [0, 1, 2, 3]
    assert family_graph.get_parents(0) == [1, 2]
    assert family_graph.get_mother(0) == 1
    assert family_graph.get_father(0) == 2
    assert family_graph.get_siblings(0) == [3]
    assert family_graph.get_children(1) == [0, 3]
    assert family_graph.get_all_partners(1) == [2]
    assert family_graph.get_relationship_node(2, 1) == 4
    assert family_graph.get_childhub(4) == 5
    assert family_graph.get_parent_relationship(3) == 4
    assert family_graph.kind(5) == VertexKind.CHILDHUB


def test_founders_have_no_parents(family_graph):
    assert family_graph.get_parents(1) == []
    assert family_graph.get_mother(1) is None
    assert family_graph.get_siblings(1) == []


def test_add_vertex_checks_property_type():
    graph = Graph()
    assert isinstance(graph.properties(graph.add_vertex(VertexKind.RELATIONSHIP)), Relationship)
    assert isinstance(graph.properties(graph.add_vertex(VertexKind.CHILDHUB)), ChildHub)
    with pytest.raises(ValueError):
        graph.add_vertex(VertexKind.PERSON, Relationship())


def test_add_edge_rejects_invalid_kinds(family_graph):
    """Persons only connect to relationships, never directly to each other."""
    with pytest.raises(ValueError):
        family_graph.add_edge(0, 3)
    with pytest.raises(ValueError):
        family_graph.add_edge(5, 4)
    with pytest.raises(ValueError):
        family_graph.add_edge(0, 99)


def test_unknown_gender_parent_takes_the_free_slot():
    # ARRANGE: a child of a father and a parent of unknown gender
    graph = Graph()
    child = graph.add_vertex(VertexKind.PERSON, Person(id="child"))
    unknown, father = add_parents(graph, child, Person(id="p1", gender="U"), Person(id="p2", gender="M"))

    # ACT & ASSERT
    assert graph.get_father(child) == father
    assert graph.get_mother(child) == unknown


def test_parents_of_unknown_gender_fill_no_slot():
    graph = Graph()
    child = graph.add_vertex(VertexKind.PERSON, Person(id="child"))
    add_parents(graph, child, Person(id="p1"), Person(id="p2"))
    assert graph.get_mother(child) is None
    assert graph.get_father(child) is None
    assert len(graph.get_parents(child)) == 2


def test_parent_generations_and_shared_ancestors(family_graph):
    # ARRANGE: maternal grandparents above the mother
    grandmother, grandfather = add_parents(family_graph, 1, Person(id="gm", gender="F"), Person(id="gf", gender="M"))

    # ACT & ASSERT
    assert family_graph.get_parent_generations(0, 1) == {1, 2}
    assert family_graph.get_parent_generations(0, 2) == {1, 2, grandmother, grandfather}
    assert family_graph.share_ancestor(0, 3, 1)
    assert not family_graph.share_ancestor(1, 2, 3)
    assert not family_graph.share_ancestor(0, 3, 0)


def test_twins_share_a_group(family_graph):
    family_graph.person(0).twin_group = 1
    family_graph.person(3).twin_group = 1
    assert family_graph.get_all_twins_of(0) == [0, 3]
    assert family_graph.get_all_twins_of(1) == [1]
    assert family_graph.get_twin_group_id(3) == 1


def test_validate_accepts_a_consistent_pedigree(family_graph):
    family_graph.validate()


def test_validate_rejects_two_sets_of_parents(family_graph):
    # ARRANGE: a second couple also claims the brother
    a = family_graph.add_vertex(VertexKind.PERSON, Person(id="a", gender="F"))
    b = family_graph.add_vertex(VertexKind.PERSON, Person(id="b", gender="M"))
    childhub = RelationshipTracker(family_graph).create_or_get_childhub(a, b)
    family_graph.add_edge(childhub, 3)

    # ACT & ASSERT
    with pytest.raises(GraphValidationError, match="sets of parents"):
        family_graph.validate()


def test_validate_rejects_a_relationship_without_child_hub():
    graph = Graph()
    a = graph.add_vertex(VertexKind.PERSON, Person(id="a"))
    b = graph.add_vertex(VertexKind.PERSON, Person(id="b"))
    relationship = graph.add_vertex(VertexKind.RELATIONSHIP)
    graph.add_edge(a, relationship)
    graph.add_edge(b, relationship)
    with pytest.raises(GraphValidationError, match="child hub"):
        graph.validate()


def test_validate_rejects_ancestry_cycles():
    # ARRANGE: a is a parent of b and b is a parent of a
    graph = Graph()
    a = graph.add_vertex(VertexKind.PERSON, Person(id="a", gender="F"))
    b = graph.add_vertex(VertexKind.PERSON, Person(id="b", gender="F"))
    c = graph.add_vertex(VertexKind.PERSON, Person(id="c", gender="M"))
    tracker = RelationshipTracker(graph)
    graph.add_edge(tracker.create_or_get_childhub(a, c), b)
    graph.add_edge(tracker.create_or_get_childhub(b, c), a)

    # ACT & ASSERT
    with pytest.raises(GraphValidationError, match="own ancestor"):
        graph.validate()


def test_tracker_returns_one_relationship_per_pair(family_graph):
    """Pairs are unordered and existing relationships of the graph are reused."""
    tracker = RelationshipTracker(family_graph)
    assert tracker.create_or_get_relationship(2, 1) == 4
    assert tracker.create_or_get_childhub(1, 2) == 5
    assert family_graph.size() == 6

    relationship = tracker.create_or_get_relationship(0, 3)
    assert tracker.create_or_get_relationship(3, 0) == relationship
    assert family_graph.get_relationship_children(relationship) == []
    family_graph.validate()


def test_tracker_rejects_self_relationships(family_graph):
    tracker = RelationshipTracker(family_graph)
    with pytest.raises(StructuralImportError):
        tracker.create_or_get_relationship(0, 0)
    with pytest.raises(ValueError):
        tracker.create_or_get_relationship(0, 4)
