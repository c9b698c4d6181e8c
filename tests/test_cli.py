# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json

import pytest
from typer.testing import CliRunner

from py_pedigree_core.cli import app
from py_pedigree_core.config import settings

runner = CliRunner()

QUESTIONNAIRE = [
    {"tag": "proband", "name": "Jane Doe", "sex": "F", "dob": "1980-05-02"},
    {"tag": "mother", "name": "Mary Doe"},
    {"tag": "father", "name": "John Doe"},
    {"tag": "sibling_1", "name": "Tom Doe", "sex": "M"},
]


@pytest.fixture
def questionnaire_file(tmp_path):
    """Writes a four person questionnaire to a temporary file."""
    path = tmp_path / "questionnaire.json"
    path.write_text(json.dumps(QUESTIONNAIRE))
    return path


def test_convert_writes_the_output_file(questionnaire_file, tmp_path):
    output = tmp_path / "pedigree.json"
    result = runner.invoke(app, [
        "convert", str(questionnaire_file), "--from", "questionnaire", "--to", "ga4gh", "-o", str(output),
    ])
    assert result.exit_code == 0
    assert "Conversion Complete" in result.stdout
    composition = json.loads(output.read_text())
    assert composition["resourceType"] == "Composition"
    patients = [r for r in composition["contained"] if r["resourceType"] == "Patient"]
    assert len(patients) == 4


def test_convert_with_privacy_and_svg(questionnaire_file, tmp_path):
    svg = tmp_path / "drawing.svg"
    svg.write_text("<svg/>")
    output = tmp_path / "pedigree.json"
    result = runner.invoke(app, [
        "convert", str(questionnaire_file), "-f", "questionnaire", "-t", "ga4gh",
        "-p", "nopersonal", "--svg", str(svg), "-o", str(output),
    ])
    assert result.exit_code == 0
    contained = json.loads(output.read_text())["contained"]
    assert any(r["resourceType"] == "DocumentReference" for r in contained)
    assert all("name" not in r for r in contained if r["resourceType"] == "Patient")


def test_convert_prints_without_output(questionnaire_file):
    result = runner.invoke(app, ["convert", str(questionnaire_file), "-f", "questionnaire", "-t", "fhir"])
    assert result.exit_code == 0
    assert '"resourceType": "Composition"' in result.stdout


def test_convert_reports_import_errors(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text('{"tag": "proband"}')
    result = runner.invoke(app, ["convert", str(bad), "-f", "questionnaire", "-t", "fhir"])
    assert result.exit_code == 1
    assert "Unable to import pedigree" in result.stdout


def test_roles_lists_every_person(questionnaire_file):
    result = runner.invoke(app, ["roles", str(questionnaire_file), "--from", "questionnaire"])
    assert result.exit_code == 0
    for role in ("ONESELF", "NMTH", "NFTH", "NBRO"):
        assert role in result.stdout


def test_validate_accepts_a_consistent_pedigree(questionnaire_file):
    result = runner.invoke(app, ["validate", str(questionnaire_file), "--from", "questionnaire"])
    assert result.exit_code == 0
    assert "valid pedigree" in result.stdout


def test_validate_fails_on_self_parenthood(tmp_path):
    path = tmp_path / "fhir.json"
    path.write_text(json.dumps({
        "resourceType": "Composition",
        "contained": [{
            "resourceType": "FamilyMemberHistory",
            "id": "me",
            "relationship": {"coding": [{"code": "ONESELF"}]},
            "extension": [{
                "url": "http://hl7.org/fhir/StructureDefinition/family-member-history-genetics-parent",
                "extension": [
                    {"url": "type", "valueCodeableConcept": {"text": "mother"}},
                    {"url": "reference", "valueReference": {"reference": "#me"}},
                ],
            }],
        }],
    }))
    result = runner.invoke(app, ["validate", str(path), "--from", "fhir"])
    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_missing_input_file_is_a_usage_error(tmp_path):
    result = runner.invoke(app, ["validate", str(tmp_path / "missing.json"), "--from", "fhir"])
    assert result.exit_code == 2


def test_badly_typed_input_is_reported_without_a_traceback(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"tag": "proband", "name": 42}]))
    result = runner.invoke(app, ["validate", str(bad), "--from", "questionnaire"])
    assert result.exit_code == 1
    assert "Unable to import pedigree" in result.stdout
    assert "Traceback" not in result.stdout


def test_terms_searches_the_terminology_server(monkeypatch, requests_mock):
    # ARRANGE
    monkeypatch.setattr(settings, "terminology_base_url", "http://tx.example.org/fhir")
    requests_mock.get(
        "http://tx.example.org/fhir/ValueSet/$expand",
        json={"expansion": {"contains": [{"code": "HP:0001250", "display": "Seizure"}]}},
    )

    # ACT
    result = runner.invoke(app, ["terms", "phenotypes", "seiz"])

    # ASSERT
    assert result.exit_code == 0
    assert "HP:0001250" in result.stdout
    assert "Seizure" in result.stdout
    assert requests_mock.last_request.qs["url"] == ["http://purl.obolibrary.org/obo/hp.owl?fhir_vs"]


def test_terms_reports_no_matches():
    result = runner.invoke(app, ["terms", "genes", "brca"])
    assert result.exit_code == 0
    assert "No genes match 'brca'" in result.stdout
