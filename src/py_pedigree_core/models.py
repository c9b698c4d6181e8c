# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional, Set, Union

Gender = Literal["M", "F", "U"]
LifeStatus = Literal["alive", "deceased", "stillborn", "miscarriage", "aborted", "unborn"]


class VertexKind(str, Enum):
    """The three kinds of vertex in a pedigree graph."""
    PERSON = "person"
    RELATIONSHIP = "relationship"
    CHILDHUB = "childhub"


class Person(BaseModel):
    """
    Represents one individual in the pedigree.
    A missing life_status means the person is alive. Dates use the M/D/YYYY form.
    """
    id: Optional[str] = None  # identifier of the source record
    gender: Gender = "U"
    life_status: Optional[LifeStatus] = None
    f_name: Optional[str] = None
    l_name: Optional[str] = None
    l_name_at_b: Optional[str] = None
    dob: Optional[str] = None
    dod: Optional[str] = None
    gestation_age: Optional[int] = None  # weeks
    external_id: Optional[str] = None
    comments: Optional[str] = None
    disorders: List[str] = Field(default_factory=list)
    hpo_terms: List[str] = Field(default_factory=list)
    candidate_genes: List[str] = Field(default_factory=list)
    carrier_status: Optional[Literal["carrier", "presymptomatic"]] = None
    childless_status: Optional[Literal["childless", "infertile"]] = None
    twin_group: Optional[int] = None
    monozygotic: Optional[bool] = None
    is_adopted: bool = False

    @property
    def is_virtual(self) -> bool:
        """True for a placeholder synthesized for an undocumented parent."""
        return self.comments == "unknown" and not (self.id or self.f_name or self.external_id)


class Relationship(BaseModel):
    """
    A partnership between exactly two distinct persons.
    consangr is 'N' (not consanguineous), 'Y' (confirmed) or 'A' (automatic,
    decided from a shared ancestor).
    """
    consangr: Literal["N", "Y", "A"] = "A"


class ChildHub(BaseModel):
    """
    The single attachment point for all children of one Relationship.
    """


VertexProperties = Union[Person, Relationship, ChildHub]

PROPERTY_TYPES = {
    VertexKind.PERSON: Person,
    VertexKind.RELATIONSHIP: Relationship,
    VertexKind.CHILDHUB: ChildHub,
}


class ImportNode(BaseModel):
    """
    One external record extracted by an import front end, before its
    references to other records are resolved into graph vertex ids.
    References are record ids or first names.
    """
    properties: Person
    mother: Optional[str] = None
    father: Optional[str] = None
    parents: List[str] = Field(default_factory=list)
    partners: Set[str] = Field(default_factory=set)
    cpartners: Set[str] = Field(default_factory=set)
    children: Set[str] = Field(default_factory=set)


class BadNode(BaseModel):
    """
    A record that could not be placed in the pedigree and was left out of the graph.
    """
    reference: str
    reason: str
    record: Dict[str, Any] = Field(default_factory=dict)
