# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import re
from collections import deque
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .graph import Graph

ROLE_CODE_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-RoleCode"

PARENT_BASES = ("MTH", "FTH", "PRN")
GRANDPARENT_BASES = ("GRMTH", "GRFTH", "GRPRN")
CHILD_BASES = ("DAU", "SON", "CHILD", "CHLD")
SIBLING_BASES = ("SIS", "BRO", "SIB", "TWIN")
GRANDCHILD_BASES = ("GRNDDAU", "GRNDSON", "GRNDCHILD")
NIECE_BASES = ("NIECE", "NEPHEW", "NIENEPH")
PIBLING_BASES = ("AUNT", "UNCLE", "PIBLING")

# ADOPT follows these bases (DAUADOPT) and precedes all others (ADOPTMTH)
ADOPT_SUFFIX_BASES = ("DAU", "SON", "CHLD")

ROLE_RE = re.compile(
    r"^(?P<side>[MP]?)(?P<depth>G*)(?P<status>N|ADOPT|STP|H|TWIN|FTWIN)?"
    r"(?P<base>MTH|FTH|PRN|GRMTH|GRFTH|GRPRN|DAU|SON|CHILD|CHLD|SIS|BRO|SIB|TWIN|GRNDDAU|GRNDSON|GRNDCHILD"
    r"|NIECE|NEPHEW|NIENEPH|AUNT|UNCLE|PIBLING|COUSN|ONESELF|SIGOTHR)"
    r"(?P<suffix>ADOPT|INLAW)?$"
)


class Role(BaseModel):
    """
    A kinship role relative to the proband, parsed from its v3-RoleCode style token.
    side is 'M' (maternal), 'P' (paternal) or ''; depth counts the extra 'G'
    (great-) generations; status is one of N, ADOPT, STP, H, TWIN, FTWIN, INLAW or ''.
    """
    model_config = ConfigDict(frozen=True)

    side: str = ""
    depth: int = 0
    base: str
    status: str = ""

    @property
    def token(self) -> str:
        if self.status == "INLAW" or (self.status == "ADOPT" and self.base in ADOPT_SUFFIX_BASES):
            return f"{self.side}{'G' * self.depth}{self.base}{self.status}"
        return f"{self.side}{'G' * self.depth}{self.status}{self.base}"


def parse_role(token: Optional[str]) -> Optional[Role]:
    """Parses a role token such as 'MGGRMTH' or 'DAUADOPT'. Returns None for '' and unknown tokens."""
    if not token:
        return None
    match = ROLE_RE.match(token)
    if match is None:
        return None
    return Role(
        side=match.group("side"),
        depth=len(match.group("depth")),
        base=match.group("base"),
        status=match.group("suffix") or match.group("status") or "",
    )


def _by_gender(gender: str, female: str, male: str, unknown: str) -> str:
    return {"F": female, "M": male}.get(gender, unknown)


def _merge_sides(sides: List[str]) -> str:
    """Equal sides are kept, an empty side yields to the other, a maternal/paternal conflict gives ''."""
    known = {side for side in sides if side}
    return known.pop() if len(known) == 1 else ""


def _seed_roles(graph: Graph, proband: int) -> Dict[int, str]:
    roles: Dict[int, str] = {proband: "ONESELF"}
    status = "ADOPT" if graph.is_adopted(proband) else "N"

    mother = graph.get_mother(proband)
    father = graph.get_father(proband)
    ancestors = deque()
    for parent in graph.get_parents(proband):
        if parent == mother:
            base, side = "MTH", "M"
        elif parent == father:
            base, side = "FTH", "P"
        else:
            base, side = "PRN", ""
        roles.setdefault(parent, Role(base=base, status=status).token)
        ancestors.append((parent, side, -1))

    while ancestors:
        current, side, depth = ancestors.popleft()
        for grandparent in graph.get_parents(current):
            if grandparent in roles:
                continue
            base = _by_gender(graph.get_gender(grandparent), "GRMTH", "GRFTH", "GRPRN")
            roles[grandparent] = Role(side=side, depth=depth + 1, base=base).token
            ancestors.append((grandparent, side, depth + 1))

    for partner in graph.get_all_partners(proband):
        roles.setdefault(partner, "SIGOTHR")
        for in_law in graph.get_parents(partner):
            roles.setdefault(in_law, _by_gender(graph.get_gender(in_law), "MTHINLAW", "FTHINLAW", "PRNINLAW"))

    for parent in graph.get_parents(proband):
        parent_role = parse_role(roles[parent])
        step = {"MTH": "STPFTH", "FTH": "STPMTH"}.get(parent_role.base, "STPPRN")
        for partner in graph.get_all_partners(parent):
            if partner not in graph.get_parents(proband):
                roles.setdefault(partner, step)
    return roles


def _derive_role(graph: Graph, person: int, roles: Dict[int, str], proband: int) -> Dict[int, str]:
    """
    Derives the role of person from the roles of its parents, plus the in-law roles
    of its partners where that applies. Returns an empty dict when nothing follows yet.
    """
    parents = graph.get_parents(person)
    parent_tokens = [roles[p] for p in parents if roles.get(p)]
    if not parent_tokens:
        return {}
    parent_roles = [r for r in (parse_role(t) for t in parent_tokens) if r is not None]
    gender = graph.get_gender(person)
    adopted = graph.is_adopted(person)

    def with_in_laws(token: str, female: str, male: str, unknown: str) -> Dict[int, str]:
        derived = {person: token}
        for partner in graph.get_all_partners(person):
            derived[partner] = _by_gender(gender, female, male, unknown)
        return derived

    if "ONESELF" in parent_tokens:
        if adopted:
            token = _by_gender(gender, "DAUADOPT", "SONADOPT", "CHLDADOPT")
        else:
            token = _by_gender(gender, "DAU", "SON", "NCHILD")
        return with_in_laws(token, "SONINLAW", "DAUINLAW", "CHLDINLAW")

    if "SIGOTHR" in parent_tokens:
        if adopted:
            token = _by_gender(gender, "DAUADOPT", "SONADOPT", "CHLDADOPT")
        else:
            token = _by_gender(gender, "STPDAU", "STPSON", "STPCHLD")
        return with_in_laws(token, "SONINLAW", "DAUINLAW", "CHLDINLAW")

    natural = [r for r in parent_roles
               if r.base in PARENT_BASES and r.status in ("N", "ADOPT") and not r.side and not r.depth]
    if len(natural) == 2:
        twin_group = graph.get_twin_group_id(person)
        if twin_group is not None and twin_group == graph.get_twin_group_id(proband):
            proband_gender = graph.get_gender(proband)
            if "U" in (gender, proband_gender) or gender == proband_gender:
                token = _by_gender(gender, "TWINSIS", "TWINBRO", "TWIN")
            else:
                token = _by_gender(gender, "FTWINSIS", "FTWINBRO", "TWIN")
        else:
            token = _by_gender(gender, "NSIS", "NBRO", "NSIB")
        return with_in_laws(token, "BROINLAW", "SISINLAW", "SIBINLAW")
    if len(natural) == 1:
        token = _by_gender(gender, "HSIS", "HBRO", "HSIB")
        return with_in_laws(token, "BROINLAW", "SISINLAW", "SIBINLAW")
    if any(r.base in PARENT_BASES and r.status == "STP" for r in parent_roles):
        token = _by_gender(gender, "STPSIS", "STPBRO", "STPSIB")
        return with_in_laws(token, "BROINLAW", "SISINLAW", "SIBINLAW")

    if any(r.base in CHILD_BASES and r.status != "INLAW" for r in parent_roles):
        return {person: _by_gender(gender, "GRNDDAU", "GRNDSON", "GRNDCHILD")}
    if any(r.base in SIBLING_BASES and r.status != "INLAW" for r in parent_roles):
        return {person: _by_gender(gender, "NIECE", "NEPHEW", "NIENEPH")}

    matches = [r for r in parent_roles if r.base in GRANDCHILD_BASES]
    if matches:
        base = _by_gender(gender, "GRNDDAU", "GRNDSON", "GRNDCHILD")
        return {person: Role(depth=min(r.depth for r in matches) + 1, base=base).token}

    matches = [r for r in parent_roles if r.base in GRANDPARENT_BASES and r.status != "INLAW"]
    if matches:
        base = _by_gender(gender, "AUNT", "UNCLE", "PIBLING")
        side = _merge_sides([r.side for r in matches])
        return {person: Role(side=side, depth=max(r.depth for r in matches), base=base).token}

    matches = [r for r in parent_roles if r.base in PIBLING_BASES]
    if matches:
        return {person: Role(side=_merge_sides([r.side for r in matches]), base="COUSN").token}

    matches = [r for r in parent_roles if r.base in NIECE_BASES]
    if matches:
        base = _by_gender(gender, "NIECE", "NEPHEW", "NIENEPH")
        return {person: Role(depth=min(r.depth for r in matches) + 1, base=base).token}

    matches = [r for r in parent_roles if r.base == "COUSN"]
    if matches:
        return {person: Role(side=_merge_sides([r.side for r in matches]), base="COUSN").token}
    return {}


def classify_roles(graph: Graph, proband: int = 0) -> Dict[int, str]:
    """
    Assigns every person a kinship role token relative to the proband.

    Direct ancestors, partners and step-parents are seeded first. The remaining
    persons are then derived from their parents' roles, sweeping in ascending id
    order until a sweep assigns nothing new. A role, once assigned, never changes.
    Persons that cannot be related to the proband map to ''.
    """
    roles = _seed_roles(graph, proband)
    pending = [p for p in graph.persons() if p not in roles]
    progressed = True
    while pending and progressed:
        progressed = False
        for person in pending:
            if person in roles:
                continue
            for target, token in _derive_role(graph, person, roles, proband).items():
                if target not in roles:
                    roles[target] = token
                    progressed = True
        pending = [p for p in pending if p not in roles]
    for person in pending:
        roles[person] = ""
    return dict(sorted(roles.items()))


ROLE_DISPLAYS = {
    "ONESELF": "self",
    "FAMMEMB": "family member",
    "NMTH": "natural mother",
    "NFTH": "natural father",
    "NPRN": "natural parent",
    "ADOPTMTH": "adoptive mother",
    "ADOPTFTH": "adoptive father",
    "ADOPTPRN": "adoptive parent",
    "DAU": "natural daughter",
    "SON": "natural son",
    "NCHILD": "natural child",
    "DAUADOPT": "adopted daughter",
    "SONADOPT": "adopted son",
    "CHLDADOPT": "adopted child",
    "DAUINLAW": "daughter in-law",
    "SONINLAW": "son in-law",
    "CHLDINLAW": "child-in-law",
    "SIGOTHR": "significant other",
    "STPDAU": "stepdaughter",
    "STPSON": "stepson",
    "STPCHLD": "step child",
    "TWINSIS": "twin sister",
    "TWINBRO": "twin brother",
    "TWIN": "twin",
    "FTWINSIS": "fraternal twin sister",
    "FTWINBRO": "fraternal twin brother",
    "NSIS": "natural sister",
    "NBRO": "natural brother",
    "NSIB": "natural sibling",
    "HSIS": "half-sister",
    "HBRO": "half-brother",
    "HSIB": "half-sibling",
    "BROINLAW": "brother-in-law",
    "SISINLAW": "sister-in-law",
    "SIBINLAW": "sibling in-law",
    "GRNDDAU": "granddaughter",
    "GRNDSON": "grandson",
    "GRNDCHILD": "grandchild",
    "NIECE": "niece",
    "NEPHEW": "nephew",
    "NIENEPH": "niece/nephew",
    "MCOUSN": "maternal cousin",
    "PCOUSN": "paternal cousin",
    "COUSN": "cousin",
    "MTHINLAW": "mother-in-law",
    "FTHINLAW": "father-in-law",
    "PRNINLAW": "parent in-law",
    "MAUNT": "maternal aunt",
    "PAUNT": "paternal aunt",
    "AUNT": "aunt",
    "MUNCLE": "maternal uncle",
    "PUNCLE": "paternal uncle",
    "UNCLE": "uncle",
    "GGRPRN": "great grandparent",
    "GGRFTH": "great grandfather",
    "MGGRFTH": "maternal great-grandfather",
    "PGGRFTH": "paternal great-grandfather",
    "GGRMTH": "great grandmother",
    "MGGRMTH": "maternal great-grandmother",
    "PGGRMTH": "paternal great-grandmother",
    "MGGRPRN": "maternal great-grandparent",
    "PGGRPRN": "paternal great-grandparent",
    "GRPRN": "grandparent",
    "GRFTH": "grandfather",
    "MGRFTH": "maternal grandfather",
    "PGRFTH": "paternal grandfather",
    "GRMTH": "grandmother",
    "MGRMTH": "maternal grandmother",
    "PGRMTH": "paternal grandmother",
    "MGRPRN": "maternal grandparent",
    "PGRPRN": "paternal grandparent",
    "STPMTH": "stepmother",
    "STPFTH": "stepfather",
    "STPPRN": "step parent",
    "STPSIS": "stepsister",
    "STPBRO": "stepbrother",
    "STPSIB": "step sibling",
}

# roles whose v3-RoleCode code differs from the token
ROLE_CODES = {"ADOPTMTH": "ADOPTM", "ADOPTFTH": "ADOPTF", "ADOPTPRN": "ADOPTP"}


def role_to_fhir(role: str) -> Tuple[str, str]:
    """Returns the v3-RoleCode (code, display) for a role token."""
    if not role:
        return "FAMMEMB", ROLE_DISPLAYS["FAMMEMB"]
    if role not in ROLE_DISPLAYS:
        return "EXT", "extended family member"
    return ROLE_CODES.get(role, role), ROLE_DISPLAYS[role]
