# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import pytest
from pydantic import ValidationError

from py_pedigree_core.config import Settings


def test_defaults(monkeypatch):
    for name in ("DEFAULT_PRIVACY", "CONSANGUINITY_DEPTH", "BAD_NODE_POLICY", "TERMINOLOGY_BASE_URL", "GENE_LOOKUP_URL"):
        monkeypatch.delenv(f"PYPEDIGREECORE_{name}", raising=False)
    config = Settings(_env_file=None)
    assert config.default_privacy == "all"
    assert config.consanguinity_depth == 3
    assert config.bad_node_policy == "drop"
    assert config.terminology_base_url is None
    assert config.gene_lookup_url is None
    assert (config.gene_lookup_value_column, config.gene_lookup_text_column) == ("symbol", "name")
    assert config.disorder_system == "http://www.omim.org"


def test_environment_overrides(monkeypatch):
    """Settings are read from PYPEDIGREECORE_ prefixed variables, case-insensitively."""
    monkeypatch.setenv("PYPEDIGREECORE_DEFAULT_PRIVACY", "minimal")
    monkeypatch.setenv("pypedigreecore_consanguinity_depth", "5")
    monkeypatch.setenv("PYPEDIGREECORE_TERMINOLOGY_BASE_URL", "http://tx.example.org/fhir")

    config = Settings(_env_file=None)

    assert config.default_privacy == "minimal"
    assert config.consanguinity_depth == 5
    assert config.terminology_base_url == "http://tx.example.org/fhir"


def test_invalid_policy_is_rejected(monkeypatch):
    monkeypatch.setenv("PYPEDIGREECORE_BAD_NODE_POLICY", "ignore")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
