# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import pytest

from py_pedigree_core.config import settings
from py_pedigree_core.graph import Graph
from py_pedigree_core.models import Person, VertexKind
from py_pedigree_core.relationship_tracker import RelationshipTracker
from py_pedigree_core.terminology import Legends, StaticTerminology


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
    """Keeps every test away from a terminology server and on the default policies."""
    monkeypatch.setattr(settings, "terminology_base_url", None)
    monkeypatch.setattr(settings, "gene_lookup_url", None)
    monkeypatch.setattr(settings, "default_privacy", "all")
    monkeypatch.setattr(settings, "bad_node_policy", "drop")
    monkeypatch.setattr(settings, "consanguinity_depth", 3)


@pytest.fixture
def legends():
    """Legends resolving a few known codes to displays."""
    return Legends.from_settings(StaticTerminology({
        "OMIM:104300": "Alzheimer disease",
        "HP:0001250": "Seizure",
        "BRCA1": "BRCA1 DNA repair associated",
    }))


@pytest.fixture
def family_graph():
    """
    A four person pedigree: the proband (0), her mother (1), her father (2) and
    her brother (3). The parents' relationship is vertex 4 and its child hub 5.
    """
    graph = Graph()
    graph.add_vertex(VertexKind.PERSON, Person(
        id="anna", gender="F", f_name="Anna", l_name="Smith", dob="3/14/1990",
        disorders=["OMIM:104300"], hpo_terms=["HP:0001250"], comments="proband",
    ))
    graph.add_vertex(VertexKind.PERSON, Person(
        id="mary", gender="F", f_name="Mary", l_name="Smith", l_name_at_b="Jones",
    ))
    graph.add_vertex(VertexKind.PERSON, Person(
        id="john", gender="M", f_name="John", l_name="Smith", dod="6/1/2015", life_status="deceased",
    ))
    graph.add_vertex(VertexKind.PERSON, Person(id="tom", gender="M", f_name="Tom", l_name="Smith"))

    childhub = RelationshipTracker(graph).create_or_get_childhub(1, 2)
    graph.add_edge(childhub, 0)
    graph.add_edge(childhub, 3)
    return graph


def add_parents(graph: Graph, child: int, mother: Person, father: Person):
    """Adds a couple to the graph as the parents of child and returns their vertex ids."""
    mother_id = graph.add_vertex(VertexKind.PERSON, mother)
    father_id = graph.add_vertex(VertexKind.PERSON, father)
    childhub = RelationshipTracker(graph).create_or_get_childhub(mother_id, father_id)
    graph.add_edge(childhub, child)
    return mother_id, father_id


def vertex_of(graph: Graph, record_id: str) -> int:
    """The vertex of the person imported from the record with the given id."""
    for v in graph.persons():
        if graph.person(v).id == record_id:
            return v
    raise KeyError(record_id)
