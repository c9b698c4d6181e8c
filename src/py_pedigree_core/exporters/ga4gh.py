# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import base64
from collections import deque
from typing import Dict, List, Optional

from rich.console import Console

from ..config import settings
from ..dates import pedigree_date_to_fhir
from ..importers.ga4gh import (
    EXTERNAL_ID_SYSTEM,
    PATIENT_RECORD_EXTENSION,
    PEDIGREE_PROFILE,
    REL_SYSTEM,
    SNOMED_CARRIER,
    SNOMED_INFERTILE,
    SNOMED_NUMBER_OF_OFFSPRING,
    SNOMED_PRESYMPTOMATIC,
    SNOMED_SYSTEM,
    UNBORN_EXTENSION,
)
from ..models import Person
from .base import BaseExporter, parent_slots, to_json

console = Console()

INDIVIDUAL_PROFILE = "http://purl.org/ga4gh/pedigree-fhir-ig/StructureDefinition/PedigreeIndividual"
RELATIONSHIP_PROFILE = "http://purl.org/ga4gh/pedigree-fhir-ig/StructureDefinition/PedigreeRelationship"
SECTION_TYPE_SYSTEM = "http://purl.org/ga4gh/pedigree-fhir-ig/CodeSystem/SectionType"
UNBORN_STATUSES = ("stillborn", "miscarriage", "aborted", "unborn")

REL_DISPLAYS = {
    "REL:001": "Relative",
    "REL:002": "Biological relative",
    "REL:003": "Biological parent",
    "REL:004": "Sperm / ovum donor",
    "REL:005": "Gestational carrier",
    "REL:006": "Surrogate ovum donor",
    "REL:007": "Biological sibling",
    "REL:008": "Full sibling",
    "REL:009": "Twin",
    "REL:010": "Monozygotic twin",
    "REL:011": "Polyzygotic twin",
    "REL:012": "Half-sibling",
    "REL:013": "parental-sibling",
    "REL:014": "Cousin",
    "REL:015": "Maternal cousin",
    "REL:016": "Paternal cousin",
    "REL:017": "Grandparent",
    "REL:018": "Great-grandparent",
    "REL:019": "Social / legal relative",
    "REL:020": "Parent figure",
    "REL:021": "Foster parent",
    "REL:022": "Adoptive parent",
    "REL:023": "Step-parent",
    "REL:024": "Sibling figure",
    "REL:025": "Step-sibling",
    "REL:026": "Significant other",
    "REL:027": "Biological mother",
    "REL:028": "Biological father",
    "REL:029": "mitochondrial donor",
    "REL:030": "Consanguineous partner",
}

RELATIONSHIP_CODES = {
    "NMTH": "REL:027",
    "NFTH": "REL:028",
    "NPRN": "REL:003",
    "ADOPTMTH": "REL:022",
    "ADOPTFTH": "REL:022",
    "ADOPTPRN": "REL:022",
    "SIGOTHR": "REL:026",
    "CONSANG": "REL:030",
    "TWIN": "REL:009",
    "MZTWIN": "REL:010",
    "TWINSIS": "REL:010",
    "TWINBRO": "REL:010",
    "FTWINSIS": "REL:011",
    "FTWINBRO": "REL:011",
}


def rel_coding(relationship: str) -> Dict[str, str]:
    """The REL coding of a relationship, 'Relative' when it has none."""
    code = RELATIONSHIP_CODES.get(relationship, "REL:001")
    return {"system": REL_SYSTEM, "code": code, "display": REL_DISPLAYS[code]}


def reference_as_id(reference: str) -> str:
    return reference[len("Patient/"):] if reference.startswith("Patient/") else reference


def reference_as_ref(reference: str) -> str:
    return reference if reference.startswith("Patient/") else f"#{reference}"


def section(title: str, code: str, entries: List[Dict]) -> Dict:
    return {
        "title": title,
        "code": {"coding": [{"system": SECTION_TYPE_SYSTEM, "code": code}]},
        "entry": entries,
    }


class Ga4ghExporter(BaseExporter):
    """
    Exports the pedigree as a GA4GH pedigree Composition.

    Starting from the proband, every person becomes a PedigreeIndividual Patient
    and every parent, partner and twin link a PedigreeRelationship
    FamilyMemberHistory. Partners and twins are linked once, from whichever of
    the two is reached first. Conditions and observations of each person are
    contained as well.
    """

    def export(self, svg: Optional[str] = None, known_references: Optional[Dict[str, str]] = None) -> str:
        """
        Returns the Composition as JSON. known_references maps external ids to existing
        Patient references ('Patient/123') used in place of the generated PI_<id> ones.
        An svg drawing is attached as a base64 DocumentReference.
        """
        known_references = known_references or {}
        references: Dict[int, str] = {}
        individuals: Dict[int, Dict] = {}
        relationships: List[Dict] = []
        conditions: Dict[int, List[Dict]] = {}
        observations: Dict[int, List[Dict]] = {}

        def reference_of(v: int) -> str:
            if v not in references:
                external_id = self.graph.person(v).external_id
                references[v] = known_references.get(external_id) if external_id in known_references else f"PI_{v}"
            return references[v]

        queue = deque([0])
        queue.extend(p for p in self.graph.persons() if p != 0)
        while queue:
            v = queue.popleft()
            if v in individuals:
                continue
            person = self.graph.person(v)
            reference = reference_of(v)
            individuals[v] = self.build_individual(reference, person)
            conditions[v] = self.build_conditions(reference, person)
            observations[v] = self.build_observations(reference, person)

            links = self._links_of(v, individuals)
            for other, relationship in links.items():
                relationships.append(self.build_relationship(reference, reference_of(other), relationship))
            # relatives come right after the person, ahead of the rest of the pedigree
            queue.extendleft(reversed(list(links)))

        proband = {"type": "Patient", "reference": reference_as_ref(reference_of(0))}
        other_entries = [{"type": "Condition", "reference": f"#{c['id']}"} for v in conditions for c in conditions[v]]
        other_entries += [{"type": "Observation", "reference": f"#{o['id']}"} for v in observations for o in observations[v]]
        sections = [
            section("Proband", "proband", [proband]),
            section("Reason collected", "reasonCollected",
                    [{"type": "Condition", "reference": f"#{c['id']}"} for c in conditions[0]]),
            section("Individuals", "individuals",
                    [{"type": "Patient", "reference": reference_as_ref(references[v])} for v in individuals]),
            section("Relationships", "relationships",
                    [{"type": "FamilyMemberHistory", "reference": f"#{r['id']}"} for r in relationships]),
            section("Other", "other", other_entries),
        ]
        contained = list(individuals.values()) + relationships
        contained += [c for v in conditions for c in conditions[v]]
        contained += [o for v in observations for o in observations[v]]

        if svg:
            sections.append(section("Pedigree Diagram", "pedigreeImage",
                                    [{"type": "DocumentReference", "reference": "#pedigreeImage"}]))
            contained.append({
                "id": "pedigreeImage",
                "resourceType": "DocumentReference",
                "status": "current",
                "docStatus": "preliminary",
                "subject": proband,
                "description": "Pedigree Diagram of Family in SVG format",
                "content": {
                    "attachment": {
                        "contentType": "image/svg+xml",
                        "data": base64.b64encode(svg.encode("utf-8")).decode("ascii"),
                    }
                },
            })

        composition = {
            "resourceType": "Composition",
            "meta": {"profile": [PEDIGREE_PROFILE]},
            "status": "final",
            "type": {"coding": [{"system": SNOMED_SYSTEM, "code": "422432008"}]},
            "subject": proband,
            "date": self.timestamp(),
            "title": "Pedigree",
            "section": sections,
            "contained": contained,
        }
        console.log(f"[green]Exported {len(individuals)} individuals and "
                    f"{len(relationships)} relationships as a GA4GH pedigree.[/green]")
        return to_json(composition)

    def _links_of(self, v: int, individuals: Dict[int, Dict]) -> Dict[int, str]:
        """Relationship codes from v to its parents, and to the partners and twins not exported yet."""
        links: Dict[int, str] = {}
        adopted = self.graph.is_adopted(v)
        mother, father, others = parent_slots(self.graph, v)
        if mother is not None:
            links[mother] = "ADOPTMTH" if adopted else "NMTH"
        if father is not None:
            links[father] = "ADOPTFTH" if adopted else "NFTH"
        for parent in others:
            links[parent] = "ADOPTPRN" if adopted else "NPRN"

        for partner in self.graph.get_all_partners(v):
            if partner not in individuals:
                links[partner] = "CONSANG" if self.is_consanguineous(v, partner) else "SIGOTHR"

        if self.graph.get_twin_group_id(v) is not None:
            for twin in self.graph.get_all_twins_of(v):
                if twin == v or twin in individuals:
                    continue
                monozygotic = self.graph.person(twin).monozygotic is True
                links[twin] = {
                    "F": "TWINSIS" if monozygotic else "FTWINSIS",
                    "M": "TWINBRO" if monozygotic else "FTWINBRO",
                }.get(self.graph.get_gender(twin), "MZTWIN" if monozygotic else "TWIN")
        return links

    def is_consanguineous(self, a: int, b: int) -> bool:
        relationship = self.graph.get_relationship_node(a, b)
        if relationship is None:
            return False
        consangr = self.graph.properties(relationship).consangr
        if consangr == "Y":
            return True
        return consangr == "A" and self.graph.share_ancestor(a, b, settings.consanguinity_depth)

    def build_individual(self, reference: str, person: Person) -> Dict:
        patient = {
            "id": reference_as_id(reference),
            "resourceType": "Patient",
            "meta": {"profile": [INDIVIDUAL_PROFILE]},
            "extension": [],
        }
        patient["gender"] = {"M": "male", "F": "female"}.get(person.gender, "unknown")

        unborn = False
        if self.include_personal and pedigree_date_to_fhir(person.dob):
            patient["birthDate"] = pedigree_date_to_fhir(person.dob)
        if person.dod:
            if self.include_personal and pedigree_date_to_fhir(person.dod):
                patient["deceasedDateTime"] = pedigree_date_to_fhir(person.dod)
            else:
                patient["deceasedBoolean"] = True
        elif person.life_status in UNBORN_STATUSES:
            unborn = True
            patient["deceasedString"] = person.life_status
            if person.gestation_age is not None:
                patient["deceasedString"] += f" {person.gestation_age} weeks"
        elif person.life_status == "deceased":
            patient["deceasedBoolean"] = True
        patient["extension"].append({"url": UNBORN_EXTENSION, "valueBoolean": unborn})

        if person.twin_group is not None:
            patient["multipleBirthBoolean"] = True

        if self.include_personal:
            names = []
            if person.l_name or person.f_name:
                name = {}
                if person.l_name:
                    name["family"] = person.l_name
                if person.f_name:
                    name["given"] = [person.f_name]
                names.append(name)
            if person.l_name_at_b and person.l_name_at_b != person.l_name:
                names.append({"use": "old", "family": person.l_name_at_b})
            if names:
                patient["name"] = names
            if person.external_id:
                patient["identifier"] = [{"system": EXTERNAL_ID_SYSTEM, "value": person.external_id}]
        return patient

    @staticmethod
    def build_relationship(reference: str, relative_reference: str, relationship: str) -> Dict:
        """The record stating that the relative is the <relationship> of the person."""
        return {
            "resourceType": "FamilyMemberHistory",
            "id": f"{reference_as_id(reference)}_{reference_as_id(relative_reference)}_Relationship",
            "meta": {"profile": [RELATIONSHIP_PROFILE]},
            "extension": [{
                "url": PATIENT_RECORD_EXTENSION,
                "valueReference": {"reference": reference_as_ref(relative_reference)},
            }],
            "status": "completed",
            "patient": {"reference": reference_as_ref(reference)},
            "relationship": {"coding": [rel_coding(relationship)]},
        }

    def build_conditions(self, reference: str, person: Person) -> List[Dict]:
        return [
            {
                "resourceType": "Condition",
                "id": f"{reference_as_id(reference)}_cond_{i}",
                "subject": {"reference": reference_as_ref(reference)},
                "code": self.condition_code(disorder),
            }
            for i, disorder in enumerate(person.disorders)
        ]

    def build_observations(self, reference: str, person: Person) -> List[Dict]:
        resource_id = reference_as_id(reference)
        subject = {"reference": reference_as_ref(reference)}
        observations = []
        for kind, legend, terms in (
            ("clinical", self.legends.phenotypes, person.hpo_terms),
            ("gene", self.legends.genes, person.candidate_genes),
        ):
            for j, term in enumerate(terms):
                observation = {
                    "resourceType": "Observation",
                    "id": f"{resource_id}_{kind}_{j}",
                    "status": "preliminary",
                    "subject": subject,
                }
                observation.update(self.observation_value(legend, term))
                observations.append(observation)

        if person.carrier_status:
            code, display = {
                "carrier": (SNOMED_CARRIER, "Carrier state, disease expressed"),
                "presymptomatic": (SNOMED_PRESYMPTOMATIC, "Carrier state, disease not expressed"),
            }[person.carrier_status]
            observations.append({
                "resourceType": "Observation",
                "id": f"{resource_id}_carrierStatus",
                "status": "final",
                "subject": subject,
                "valueCodeableConcept": {"coding": [{"system": SNOMED_SYSTEM, "code": code, "display": display}]},
            })
        if person.childless_status == "childless":
            observations.append({
                "resourceType": "Observation",
                "id": f"{resource_id}_childlessStatus",
                "status": "final",
                "subject": subject,
                "code": {"coding": [{
                    "system": SNOMED_SYSTEM, "code": SNOMED_NUMBER_OF_OFFSPRING, "display": "Number of offspring",
                }]},
                "valueInteger": 0,
            })
        elif person.childless_status == "infertile":
            observations.append({
                "resourceType": "Observation",
                "id": f"{resource_id}_childlessStatus",
                "status": "final",
                "subject": subject,
                "code": {"coding": [{"system": SNOMED_SYSTEM, "code": SNOMED_INFERTILE, "display": "Infertile"}]},
            })
        return observations
