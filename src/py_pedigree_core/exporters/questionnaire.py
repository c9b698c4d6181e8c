# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import Dict, Optional

from rich.console import Console

from ..dates import pedigree_date_to_fhir
from ..models import Person
from ..roles import (
    CHILD_BASES,
    GRANDCHILD_BASES,
    GRANDPARENT_BASES,
    NIECE_BASES,
    PIBLING_BASES,
    SIBLING_BASES,
    Role,
    classify_roles,
    parse_role,
)
from .base import BaseExporter, to_json

console = Console()

EXTENDED_RELATIONSHIPS = {
    "GRNDDAU": "granddaughter", "GRNDSON": "grandson", "GRNDCHILD": "grandchild",
    "NIECE": "niece", "NEPHEW": "nephew", "NIENEPH": "niece",
    "GRMTH": "great-grandmother", "GRFTH": "great-grandfather", "GRPRN": "great-grandmother",
    "AUNT": "grandaunt", "UNCLE": "granduncle", "PIBLING": "grandaunt",
}


class QuestionnaireExporter(BaseExporter):
    """
    Exports the pedigree as questionnaire answers, one record per person tagged
    with its relationship to the proband. Persons whose role has no questionnaire
    tag (in-laws, step relatives, placeholders for unknown parents) are left out.
    """

    def export(self) -> str:
        roles = classify_roles(self.graph)
        tags: Dict[int, str] = {}
        counters: Dict[str, int] = {}
        skipped = 0

        def next_tag(prefix: str) -> str:
            counters[prefix] = counters.get(prefix, 0) + 1
            return f"{prefix}{counters[prefix]}"

        for v in self.graph.persons():
            if self.graph.person(v).is_virtual:
                continue
            tag = self.tag_for(roles.get(v, ""), tags, next_tag)
            if tag is None:
                skipped += 1
                continue
            tags[v] = tag

        records = [self.build_record(v, tag, roles[v], tags) for v, tag in tags.items()]
        if skipped:
            console.log(f"[yellow]{skipped} person(s) have no questionnaire equivalent and were left out.[/yellow]")
        console.log(f"[green]Exported {len(records)} questionnaire records.[/green]")
        return to_json(records)

    @staticmethod
    def tag_for(token: str, tags: Dict[int, str], next_tag) -> Optional[str]:
        """Maps a role token to a questionnaire tag, None when the questionnaire cannot express it."""
        role = parse_role(token)
        if role is None:
            return None
        taken = set(tags.values())
        if role.base == "ONESELF":
            return "proband"
        if role.base == "SIGOTHR":
            return next_tag("partner_")
        if role.status in ("INLAW", "STP"):
            return None

        if role.base in ("MTH", "FTH", "PRN") and not role.side:
            return _free_slot(role.base, "mother", "father", taken)
        if role.base in GRANDPARENT_BASES and role.depth == 0:
            side = (role.side or "m").lower()
            return _free_slot(role.base[2:], f"{side}_mother", f"{side}_father", taken)
        if role.base in CHILD_BASES:
            return next_tag("child_")
        if role.base in SIBLING_BASES:
            return next_tag("sibling_")
        if role.base in PIBLING_BASES and role.depth == 0 and role.side:
            return next_tag(f"{role.side.lower()}_sibling_")
        if _extended_relationship(role) is not None:
            side = "f" if role.side == "P" else "m"
            return next_tag(f"{side}_extended_")
        return None

    def build_record(self, v: int, tag: str, token: str, tags: Dict[int, str]) -> Dict:
        person = self.graph.person(v)
        record: Dict = {"tag": tag}
        if self.include_personal:
            name = self.record_name(person)
            if name:
                record["name"] = name
            if person.l_name_at_b and person.l_name_at_b != person.l_name:
                record["maiden_name"] = person.l_name_at_b
        if person.gender in ("M", "F"):
            record["sex"] = person.gender
        if person.life_status == "deceased" or person.dod:
            record["deceased"] = True
        if self.include_personal:
            if pedigree_date_to_fhir(person.dob):
                record["dob"] = pedigree_date_to_fhir(person.dob)
            if pedigree_date_to_fhir(person.dod):
                record["dod"] = pedigree_date_to_fhir(person.dod)
        if person.disorders:
            record["problem"] = [self.legends.disorders.get_name(d) for d in person.disorders]

        parents = [p for p in self.graph.get_parents(v) if p in tags]
        if tag.startswith("child_"):
            partner_tags = [tags[p] for p in parents if tags[p].startswith("partner_")]
            if partner_tags:
                record["parent_tag"] = partner_tags[0]
        elif tag.startswith("sibling_"):
            record["sibling_type"] = self.sibling_type(v)
        elif "_sibling_" in tag:
            record["sibling_type"] = "full"
        elif "_extended_" in tag:
            record["relationship"] = _extended_relationship(parse_role(token))
            named = [self.record_name(self.graph.person(p)) for p in parents]
            named = [n for n in named if n]
            if self.include_personal and named:
                record["parent"] = named[0]
        return record

    @staticmethod
    def record_name(person: Person) -> Optional[str]:
        return " ".join(n for n in (person.f_name, person.l_name) if n) or None

    def sibling_type(self, v: int) -> str:
        """'full' for a child of both proband parents, 'mat'/'pat' for a half-sibling."""
        proband_parents = set(self.graph.get_parents(0))
        parents = set(self.graph.get_parents(v))
        if v in self.graph.get_siblings(0) or not proband_parents or parents == proband_parents:
            return "full"
        shared = parents & proband_parents
        if shared and self.graph.get_mother(0) in shared:
            return "mat"
        if shared:
            return "pat"
        return "full"


def _free_slot(base: str, mother_tag: str, father_tag: str, taken: set) -> Optional[str]:
    """Picks the mother or father tag by role base; a parent of unknown gender takes whichever is free."""
    if base == "MTH":
        candidates = [mother_tag]
    elif base == "FTH":
        candidates = [father_tag]
    else:
        candidates = [mother_tag, father_tag]
    for tag in candidates:
        if tag not in taken:
            return tag
    return None


def _extended_relationship(role: Optional[Role]) -> Optional[str]:
    """The questionnaire relationship of a relative recorded as m_extended_/f_extended_, if any."""
    if role is None:
        return None
    relationship = EXTENDED_RELATIONSHIPS.get(role.base)
    if role.base in GRANDCHILD_BASES:
        return {0: relationship, 1: f"great-{relationship}"}.get(role.depth)
    if role.base in NIECE_BASES:
        return {0: relationship, 1: f"grand{relationship}"}.get(role.depth)
    if role.base in GRANDPARENT_BASES or role.base in PIBLING_BASES:
        return relationship if role.depth == 1 else None
    if role.base == "COUSN":
        return "cousin" if role.side else None
    return None
