# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import pytest
import requests

from py_pedigree_core.config import settings
from py_pedigree_core.terminology import (
    CtssTerminology,
    FhirTerminology,
    Legends,
    StaticTerminology,
    TermLegend,
    desanitize_id,
    sanitize_id,
)

BASE_URL = "http://tx.example.org/fhir"
LOOKUP_URL = f"{BASE_URL}/CodeSystem/$lookup"
EXPAND_URL = f"{BASE_URL}/ValueSet/$expand"
CTSS_URL = "https://clinicaltables.example.org/api/genes/v4/search"


class CountingResolver:
    """Resolves every code to an upper-cased display and counts the calls."""

    def __init__(self):
        self.calls = 0

    def code_to_display(self, system, code):
        self.calls += 1
        return code.upper()


@pytest.fixture
def fhir_terminology():
    return FhirTerminology(BASE_URL, timeout=1, search_count=5)


def test_sanitize_and_desanitize_ids():
    assert sanitize_id("HP:0001250") == "HP_C_0001250"
    assert sanitize_id("a (b)") == "a___L_b_J_"
    assert desanitize_id("HP_C_0001250") == "HP:0001250"
    assert desanitize_id(sanitize_id("OMIM:104300.1")) == "OMIM:104300.1"


def test_static_terminology():
    terminology = StaticTerminology({"HP:1": "Plain", ("http://x", "HP:1"): "Scoped"})
    assert terminology.code_to_display("http://y", "HP:1") == "Plain"
    assert terminology.code_to_display("http://x", "HP:1") == "Scoped"
    assert terminology.code_to_display("http://x", "HP:2") == "HP:2"


def test_fhir_lookup_success(fhir_terminology, requests_mock):
    # ARRANGE
    requests_mock.get(LOOKUP_URL, json={"parameter": [
        {"name": "name", "valueString": "HPO"},
        {"name": "display", "valueString": "Seizure"},
    ]})

    # ACT
    display = fhir_terminology.code_to_display("http://purl.obolibrary.org/obo/hp.owl", "HP_C_0001250")

    # ASSERT
    assert display == "Seizure"
    assert requests_mock.last_request.qs["code"][0].upper() == "HP:0001250"


def test_fhir_lookup_degrades_to_the_code(fhir_terminology, requests_mock):
    requests_mock.get(LOOKUP_URL, status_code=500)
    assert fhir_terminology.code_to_display("http://www.omim.org", "OMIM:1") == "OMIM:1"


def test_fhir_lookup_without_display(fhir_terminology, requests_mock):
    requests_mock.get(LOOKUP_URL, json={"parameter": []})
    assert fhir_terminology.code_to_display("http://www.omim.org", "OMIM:1") == "OMIM:1"


def test_fhir_lookup_survives_connection_errors(fhir_terminology, requests_mock):
    requests_mock.get(LOOKUP_URL, exc=requests.exceptions.ConnectTimeout)
    assert fhir_terminology.code_to_display("http://www.omim.org", "OMIM:1") == "OMIM:1"


def test_fhir_search(fhir_terminology, requests_mock):
    requests_mock.get(EXPAND_URL, json={"expansion": {"contains": [
        {"code": "HP:0001250", "display": "Seizure"},
        {"code": "HP:0002069", "display": "Bilateral tonic-clonic seizure"},
    ]}})
    matches = fhir_terminology.search("http://purl.obolibrary.org/obo/hp.owl", "seiz")
    assert matches == [
        {"text": "Seizure", "value": "HP:0001250"},
        {"text": "Bilateral tonic-clonic seizure", "value": "HP:0002069"},
    ]
    assert requests_mock.last_request.qs["count"] == ["5"]
    assert requests_mock.last_request.qs["url"] == ["http://purl.obolibrary.org/obo/hp.owl?fhir_vs"]


def test_fhir_search_failure_returns_nothing(fhir_terminology, requests_mock):
    requests_mock.get(EXPAND_URL, status_code=404)
    assert fhir_terminology.search("http://example.org", "seiz") == []


def test_ctss_lookup_and_search(requests_mock):
    requests_mock.get(CTSS_URL, json=[1, ["BRCA1"], None, [["BRCA1", "BRCA1 DNA repair associated"]]])
    terminology = CtssTerminology(CTSS_URL, "symbol", "name")
    assert terminology.code_to_display("http://www.genenames.org", "BRCA1") == "BRCA1 DNA repair associated"
    assert terminology.search("http://www.genenames.org", "brca") == [{"text": "BRCA1 DNA repair associated", "value": "BRCA1"}]


def test_ctss_lookup_degrades_to_the_code(requests_mock):
    requests_mock.get(CTSS_URL, json=[0, [], None, []])
    terminology = CtssTerminology(CTSS_URL, "symbol", "name")
    assert terminology.code_to_display("http://www.genenames.org", "XYZ") == "XYZ"


def test_legend_resolves_each_code_once():
    resolver = CountingResolver()
    legend = TermLegend("http://www.genenames.org", resolver)
    assert legend.get_name("brca1") == "BRCA1"
    assert legend.get_name("brca1") == "BRCA1"
    assert resolver.calls == 1


def test_legend_prefers_seeded_displays():
    resolver = CountingResolver()
    legend = TermLegend("http://www.omim.org", resolver)
    legend.add_to_cache("OMIM:1", "Seeded")
    legend.add_to_cache("OMIM:2", None)
    assert legend.has("OMIM:1")
    assert not legend.has("OMIM:2")
    assert legend.get_name("OMIM:1") == "Seeded"
    assert resolver.calls == 0


def test_legends_use_a_configured_server(monkeypatch):
    monkeypatch.setattr(settings, "terminology_base_url", BASE_URL)
    legends = Legends.from_settings()
    assert isinstance(legends.disorders.resolver, FhirTerminology)
    assert legends.genes.system == settings.gene_system


def test_legends_without_server_use_codes():
    legends = Legends.from_settings()
    assert isinstance(legends.phenotypes.resolver, StaticTerminology)
    assert legends.phenotypes.get_name("HP:0001250") == "HP:0001250"


def test_static_search_matches_codes_and_displays():
    terminology = StaticTerminology({
        "HP:0001250": "Seizure",
        "HP:0002069": "Bilateral tonic-clonic seizure",
        ("http://www.omim.org", "OMIM:104300"): "Alzheimer disease",
    })
    assert terminology.search("http://purl.obolibrary.org/obo/hp.owl", "SEIZ") == [
        {"text": "Seizure", "value": "HP:0001250"},
        {"text": "Bilateral tonic-clonic seizure", "value": "HP:0002069"},
    ]
    assert terminology.search("http://www.omim.org", "omim:104") == [
        {"text": "Alzheimer disease", "value": "OMIM:104300"},
    ]
    assert terminology.search("http://www.genenames.org", "alzheimer") == []


def test_legend_search_uses_its_code_system(requests_mock):
    # ARRANGE
    requests_mock.get(EXPAND_URL, json={"expansion": {"contains": [{"code": "OMIM:104300", "display": "Alzheimer disease"}]}})
    legend = TermLegend("http://www.omim.org", FhirTerminology(BASE_URL))

    # ACT
    matches = legend.search("alzh")

    # ASSERT
    assert matches == [{"text": "Alzheimer disease", "value": "OMIM:104300"}]
    assert requests_mock.last_request.qs["url"] == ["http://www.omim.org?fhir_vs"]


def test_legends_send_genes_to_the_clinical_tables_service(monkeypatch, requests_mock):
    # ARRANGE
    monkeypatch.setattr(settings, "gene_lookup_url", CTSS_URL)
    requests_mock.get(CTSS_URL, json=[1, ["BRCA1"], None, [["BRCA1", "BRCA1 DNA repair associated"]]])

    # ACT
    legends = Legends.from_settings()

    # ASSERT
    assert isinstance(legends.genes.resolver, CtssTerminology)
    assert legends.genes.resolver.value_column == "symbol"
    assert isinstance(legends.disorders.resolver, StaticTerminology)
    assert legends.genes.get_name("BRCA1") == "BRCA1 DNA repair associated"


def test_an_explicit_resolver_is_used_for_every_legend(monkeypatch):
    monkeypatch.setattr(settings, "gene_lookup_url", CTSS_URL)
    resolver = StaticTerminology()
    legends = Legends.from_settings(resolver)
    assert legends.genes.resolver is resolver
