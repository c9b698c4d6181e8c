# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json
from datetime import datetime, timezone

import pytest

from conftest import add_parents
from py_pedigree_core.config import settings
from py_pedigree_core.exporters.base import BaseExporter, parent_slots
from py_pedigree_core.exporters.fhir import FhirExporter
from py_pedigree_core.exporters.questionnaire import QuestionnaireExporter
from py_pedigree_core.graph import Graph
from py_pedigree_core.importers.questionnaire import QuestionnaireImporter
from py_pedigree_core.models import Person, VertexKind
from py_pedigree_core.relationship_tracker import RelationshipTracker


def test_unknown_privacy_level_is_rejected(family_graph):
    with pytest.raises(ValueError, match="Unknown privacy level"):
        BaseExporter(family_graph, privacy="everything")


def test_privacy_defaults_to_the_configured_level(monkeypatch, family_graph):
    monkeypatch.setattr(settings, "default_privacy", "minimal")
    exporter = BaseExporter(family_graph)
    assert exporter.privacy == "minimal"
    assert not exporter.include_personal
    assert not exporter.include_comments


def test_timestamp_uses_the_given_time(family_graph):
    exporter = BaseExporter(family_graph, now=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
    assert exporter.timestamp() == "2024-01-02T03:04:05+00:00"


def test_condition_without_display_is_written_as_text(family_graph, legends):
    exporter = BaseExporter(family_graph, legends=legends)
    assert exporter.condition_code("Epilepsy") == {"text": "Epilepsy"}
    assert exporter.condition_code("OMIM:104300")["coding"][0]["display"] == "Alzheimer disease"


def test_parent_slots_fill_the_remaining_slot():
    graph = Graph()
    child = graph.add_vertex(VertexKind.PERSON, Person(id="child"))
    mother, other = add_parents(graph, child, Person(id="m", gender="F"), Person(id="o"))
    assert parent_slots(graph, child) == (mother, other, [])


def test_parent_slots_of_unknown_gender_parents():
    graph = Graph()
    child = graph.add_vertex(VertexKind.PERSON, Person(id="child"))
    first, second = add_parents(graph, child, Person(id="a"), Person(id="b"))
    assert parent_slots(graph, child) == (None, None, [first, second])


@pytest.mark.parametrize("privacy, has_names, has_note", [
    ("all", True, True),
    ("nopersonal", False, True),
    ("minimal", False, False),
])
def test_fhir_export_privacy(family_graph, legends, privacy, has_names, has_note):
    composition = json.loads(FhirExporter(family_graph, privacy=privacy, legends=legends).export())
    contained = {r["id"]: r for r in composition["contained"]}
    proband = contained["FMH_0"]
    assert (proband["name"] == "Anna Smith") is has_names
    assert ("note" in proband) is has_note
    assert ("bornDate" in proband) is has_names
    assert ("birthDate" in contained["pat"]) is has_names
    # deceased is kept at every level
    assert "deceasedDate" in contained["FMH_2"] or contained["FMH_2"]["deceasedBoolean"] is True


def test_questionnaire_export_of_a_nuclear_family(family_graph, legends):
    # ACT
    records = json.loads(QuestionnaireExporter(family_graph, legends=legends).export())

    # ASSERT
    by_tag = {record["tag"]: record for record in records}
    assert list(by_tag) == ["proband", "mother", "father", "sibling_1"]
    assert by_tag["proband"]["name"] == "Anna Smith"
    assert by_tag["proband"]["dob"] == "1990-03-14"
    assert by_tag["proband"]["problem"] == ["Alzheimer disease"]
    assert by_tag["mother"]["maiden_name"] == "Jones"
    assert by_tag["father"]["deceased"] is True
    assert by_tag["father"]["dod"] == "2015-06-01"
    assert by_tag["sibling_1"] == {"tag": "sibling_1", "name": "Tom Smith", "sex": "M", "sibling_type": "full"}


def test_questionnaire_export_without_personal_details(family_graph, legends):
    records = json.loads(QuestionnaireExporter(family_graph, privacy="nopersonal", legends=legends).export())
    assert all("name" not in r and "dob" not in r and "dod" not in r for r in records)


def test_questionnaire_export_of_extended_relatives(family_graph, legends):
    # ARRANGE: maternal grandparents and a partner with a son
    add_parents(family_graph, 1, Person(id="gm", gender="F"), Person(id="gf", gender="M"))
    husband = family_graph.add_vertex(VertexKind.PERSON, Person(id="husband", gender="M", f_name="Bob"))
    son = family_graph.add_vertex(VertexKind.PERSON, Person(id="son", gender="M"))
    family_graph.add_edge(RelationshipTracker(family_graph).create_or_get_childhub(0, husband), son)
    niece = family_graph.add_vertex(VertexKind.PERSON, Person(id="niece", gender="F", f_name="Lily"))
    sister_in_law = family_graph.add_vertex(VertexKind.PERSON, Person(id="sil", gender="F"))
    family_graph.add_edge(RelationshipTracker(family_graph).create_or_get_childhub(sister_in_law, 3), niece)

    # ACT
    records = json.loads(QuestionnaireExporter(family_graph, legends=legends).export())

    # ASSERT: the sister-in-law has no questionnaire tag and is left out
    by_tag = {record["tag"]: record for record in records}
    assert set(by_tag) == {
        "proband", "mother", "father", "sibling_1", "m_mother", "m_father", "partner_1", "child_1", "m_extended_1",
    }
    assert by_tag["child_1"]["parent_tag"] == "partner_1"
    assert by_tag["m_extended_1"]["relationship"] == "niece"
    assert by_tag["m_extended_1"]["parent"] == "Tom Smith"


def test_questionnaire_round_trip(family_graph, legends):
    exported = QuestionnaireExporter(family_graph, legends=legends).export()

    graph = QuestionnaireImporter().import_pedigree(exported).graph

    assert len(list(graph.persons())) == 4
    assert graph.person(0).f_name == "Anna"
    mother = graph.person(graph.get_mother(0))
    assert (mother.f_name, mother.l_name_at_b) == ("Mary", "Jones")
    assert [graph.person(s).f_name for s in graph.get_siblings(0)] == ["Tom"]
