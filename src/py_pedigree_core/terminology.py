# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import re
from typing import Dict, List, Optional, Protocol

import requests
from rich.console import Console

from .config import settings

console = Console()

_SANITIZE_RULES = [
    (re.compile(r"[:]"), "_C_"),
    (re.compile(r"[(\[]"), "_L_"),
    (re.compile(r"[)\]]"), "_J_"),
    (re.compile(r"[.]"), "_D_"),
    (re.compile(r"/"), "_S_"),
    (re.compile(r"[^a-zA-Z0-9,;_\-*]"), "__"),
]
_DESANITIZE_RULES = [("_C_", ":"), ("_L_", "("), ("_J_", ")"), ("_D_", "."), ("_S_", "/"), ("__", " ")]


def sanitize_id(code: str) -> str:
    """Rewrites a term code into a form that is safe to use as an element id, e.g. 'HP:0001' -> 'HP_C_0001'."""
    for pattern, replacement in _SANITIZE_RULES:
        code = pattern.sub(replacement, code)
    return code


def desanitize_id(code: str) -> str:
    for token, replacement in _DESANITIZE_RULES:
        code = code.replace(token, replacement)
    return code


class TerminologyResolver(Protocol):
    def code_to_display(self, system: str, code: str) -> str:
        ...

    def search(self, system: str, term: str) -> List[Dict[str, str]]:
        ...


class StaticTerminology:
    """
    Resolves displays from a fixed mapping. Unknown codes resolve to themselves.
    The mapping is keyed by code, or by (system, code) when the same code means
    different things in different systems.
    """

    def __init__(self, mapping: Optional[Dict] = None):
        self.mapping = mapping or {}

    def code_to_display(self, system: str, code: str) -> str:
        if (system, code) in self.mapping:
            return self.mapping[(system, code)]
        return self.mapping.get(code, code)

    def search(self, system: str, term: str) -> List[Dict[str, str]]:
        """Matches the term against the codes and displays of the mapping, ignoring case."""
        term = term.lower()
        matches = []
        for key, display in self.mapping.items():
            if isinstance(key, tuple):
                if key[0] != system:
                    continue
                key = key[1]
            if term in key.lower() or term in display.lower():
                matches.append({"text": display, "value": key})
        return matches


class FhirTerminology:
    """
    Resolves displays against a FHIR terminology server with CodeSystem/$lookup,
    and searches value sets with ValueSet/$expand.
    Lookups never raise: on any failure the code is returned and a warning logged.
    """

    def __init__(self, base_url: str, timeout: float = 10, search_count: int = 20):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.search_count = search_count

    def code_to_display(self, system: str, code: str) -> str:
        params = {"_format": "json", "system": system, "code": desanitize_id(code)}
        try:
            response = requests.get(f"{self.base_url}CodeSystem/$lookup", params=params, timeout=self.timeout)
            response.raise_for_status()
            for parameter in response.json().get("parameter", []):
                if parameter.get("name") == "display":
                    return parameter["valueString"]
            console.log(f"[yellow]No display returned for {system}|{code}, using the code.[/yellow]")
        except (requests.RequestException, ValueError, KeyError) as e:
            console.log(f"[yellow]Terminology lookup for {system}|{code} failed ({e}), using the code.[/yellow]")
        return code

    def search(self, system: str, term: str) -> List[Dict[str, str]]:
        """
        Returns up to search_count matches as {'text': display, 'value': code}, searching
        the implicit value set of the whole code system.
        """
        params = {"_format": "json", "url": f"{system}?fhir_vs", "count": self.search_count, "filter": term}
        try:
            response = requests.get(f"{self.base_url}ValueSet/$expand", params=params, timeout=self.timeout)
            response.raise_for_status()
            contains = response.json().get("expansion", {}).get("contains", [])
            return [{"text": entry["display"], "value": entry["code"]} for entry in contains]
        except (requests.RequestException, ValueError, KeyError) as e:
            console.log(f"[yellow]Terminology search for '{term}' failed: {e}[/yellow]")
            return []


class CtssTerminology:
    """
    Resolves displays with the NLM Clinical Table Search Service.
    The service answers [count, codes, extra, [[value, text], ...]].
    """

    def __init__(self, base_url: str, value_column: str, text_column: str, timeout: float = 10, search_count: int = 20):
        self.base_url = base_url
        self.value_column = value_column
        self.text_column = text_column
        self.timeout = timeout
        self.search_count = search_count

    def code_to_display(self, system: str, code: str) -> str:
        params = {
            "df": f"{self.value_column},{self.text_column}",
            "sf": self.value_column,
            "term": desanitize_id(code),
        }
        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            parsed = response.json()
            if len(parsed) > 3 and parsed[3]:
                return parsed[3][0][1]
            console.log(f"[yellow]No display returned for {code}, using the code.[/yellow]")
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            console.log(f"[yellow]Terminology lookup for {code} failed ({e}), using the code.[/yellow]")
        return code

    def search(self, system: str, term: str) -> List[Dict[str, str]]:
        params = {
            "df": f"{self.value_column},{self.text_column}",
            "maxList": self.search_count,
            "term": term,
        }
        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            parsed = response.json()
            rows = parsed[3] if len(parsed) > 3 and parsed[3] else []
            return [{"text": row[1], "value": row[0]} for row in rows]
        except (requests.RequestException, ValueError, IndexError, TypeError) as e:
            console.log(f"[yellow]Terminology search for '{term}' failed: {e}[/yellow]")
            return []


class TermLegend:
    """
    The code -> display cache of one term type (disorders, phenotypes or genes).
    Importers seed it with the displays they find in the input so that exports
    reproduce them without a server round trip.
    """

    def __init__(self, system: str, resolver: TerminologyResolver):
        self.system = system
        self.resolver = resolver
        self._cache: Dict[str, str] = {}

    def add_to_cache(self, code: str, display: Optional[str]):
        if display:
            self._cache[code] = display

    def get_name(self, code: str) -> str:
        """Returns the display for a code, asking the resolver at most once per code."""
        if code not in self._cache:
            self._cache[code] = self.resolver.code_to_display(self.system, code) or code
        return self._cache[code]

    def has(self, code: str) -> bool:
        return code in self._cache

    def search(self, term: str) -> List[Dict[str, str]]:
        """Finds codes of this term type whose code or display matches the term."""
        return self.resolver.search(self.system, term)


class Legends:
    """
    The disorder, phenotype and gene legends shared by one import and its exports.
    """

    def __init__(self, disorders: TermLegend, phenotypes: TermLegend, genes: TermLegend):
        self.disorders = disorders
        self.phenotypes = phenotypes
        self.genes = genes

    @classmethod
    def from_settings(cls, resolver: Optional[TerminologyResolver] = None) -> "Legends":
        """
        Builds legends for the configured code systems. Without an explicit resolver a
        FhirTerminology is used when a terminology server is configured, else codes are
        used as displays. Genes go to the Clinical Table Search Service when
        gene_lookup_url is set.
        """
        gene_resolver = resolver
        if resolver is None:
            if settings.gene_lookup_url:
                gene_resolver = CtssTerminology(
                    settings.gene_lookup_url,
                    settings.gene_lookup_value_column,
                    settings.gene_lookup_text_column,
                    timeout=settings.terminology_timeout,
                    search_count=settings.terminology_search_count,
                )
            if settings.terminology_base_url:
                resolver = FhirTerminology(
                    settings.terminology_base_url,
                    timeout=settings.terminology_timeout,
                    search_count=settings.terminology_search_count,
                )
            else:
                resolver = StaticTerminology()
        return cls(
            disorders=TermLegend(settings.disorder_system, resolver),
            phenotypes=TermLegend(settings.phenotype_system, resolver),
            genes=TermLegend(settings.gene_system, gene_resolver or resolver),
        )
