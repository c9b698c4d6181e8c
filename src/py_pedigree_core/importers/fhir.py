# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import re
from typing import Dict, List, Optional

from ..dates import fhir_date_to_pedigree
from ..errors import MalformedInputError
from ..models import ImportNode, Person
from ..terminology import Legends
from .base import ImportResult, build_graph, contained_resources, log_import, parse_json, reading_record

ADMINISTRATIVE_GENDER = "http://hl7.org/fhir/administrative-gender"
ROLE_CODE_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-RoleCode"
PARENT_EXTENSION = "http://hl7.org/fhir/StructureDefinition/family-member-history-genetics-parent"
OBSERVATION_EXTENSION = "http://hl7.org/fhir/StructureDefinition/family-member-history-genetics-observation"

ADOPTIVE_PARENT_CODES = {"ADOPTM", "ADOPTF", "ADOPTP"}
MOTHER_CODES = {"NMTH", "MTH", "STPMTH", "ADOPTM"}
FATHER_CODES = {"NFTH", "FTH", "STPFTH", "ADOPTF"}
MOTHER_RE = re.compile("mother", re.IGNORECASE)
FATHER_RE = re.compile("father", re.IGNORECASE)

# everything but the last word is the first name, a trailing '(name)' is the last name at birth
FMH_NAME_RE = re.compile(r"^(.*?)( ([^ (]*)) ?(\(([^)]*)\))?$")

CLINICAL_OBSERVATION_PREFIX = "fmh_clinical"
GENE_OBSERVATION_PREFIX = "fmh_genes"


def is_oneself(fmh: dict) -> bool:
    relationship = fmh.get("relationship") or {}
    return any(coding.get("code") == "ONESELF" for coding in relationship.get("coding") or [])


def _parent_type_codes(fmh: dict):
    for extension in fmh.get("extension") or []:
        if extension.get("url") != PARENT_EXTENSION:
            continue
        for sub in extension.get("extension") or []:
            if sub.get("url") == "type":
                for coding in (sub.get("valueCodeableConcept") or {}).get("coding") or []:
                    yield coding.get("code")


def sex_to_gender(sex: Optional[dict]) -> Optional[str]:
    """Reads an administrative-gender CodeableConcept. Returns None when it says nothing usable."""
    if not sex:
        return None
    for coding in sex.get("coding") or []:
        if coding.get("system") == ADMINISTRATIVE_GENDER:
            return {"male": "M", "female": "F"}.get(coding.get("code"), "U")
    text = (sex.get("text") or "").lower()
    return {"male": "M", "female": "F"}.get(text)


class FhirImporter:
    """
    Imports a clinical FHIR Composition or List whose contained
    FamilyMemberHistory resources describe the family.
    """

    def __init__(self, legends: Optional[Legends] = None):
        self.legends = legends or Legends.from_settings()

    def import_pedigree(self, data) -> ImportResult:
        resource = parse_json(data)
        if not isinstance(resource, dict) or resource.get("resourceType") not in ("Composition", "List"):
            raise MalformedInputError("input is not a resource type we understand")

        contained: Dict[str, dict] = {}
        family_history = []
        for entry in contained_resources(resource):
            contained["#" + str(entry.get("id"))] = entry
            if entry.get("resourceType") == "FamilyMemberHistory":
                family_history.append(entry)

        with reading_record("a FamilyMemberHistory"):
            subject = None
            reference = (resource.get("subject") or {}).get("reference") or ""
            if reference.startswith("#"):
                subject = contained.get(reference)

            # the proband must become vertex 0
            family_history.sort(key=lambda fmh: 0 if is_oneself(fmh) else 1)
            nodes = [self.extract_node(fmh, subject, contained) for fmh in family_history]

        result = ImportResult(graph=build_graph(nodes))
        log_import("clinical FHIR", result)
        return result

    def extract_node(self, fmh: dict, subject: Optional[dict], contained: Dict[str, dict]) -> ImportNode:
        """Turns one FamilyMemberHistory into an ImportNode with mother/father references."""
        person = Person(id=fmh.get("id"))
        person.gender = sex_to_gender(fmh.get("sex")) or "U"

        name = fmh.get("name")
        if name:
            match = FMH_NAME_RE.match(name)
            if match is None:
                person.f_name = name
            else:
                person.f_name = match.group(1)
                person.l_name = match.group(3)
                if match.group(5):
                    person.l_name_at_b = match.group(5)

        person.dob = fhir_date_to_pedigree(fmh.get("bornDate"))
        person.dod = fhir_date_to_pedigree(fmh.get("deceasedDate"))
        if person.dod or fmh.get("deceasedBoolean"):
            person.life_status = "deceased"
        notes = fmh.get("note") or []
        if notes and notes[0].get("text"):
            person.comments = notes[0]["text"]

        for condition in fmh.get("condition") or []:
            disorder = self._read_condition(condition.get("code") or {})
            if disorder:
                person.disorders.append(disorder)

        node = ImportNode(properties=person)
        possible_mothers: List[str] = []
        possible_fathers: List[str] = []
        possible_parents: List[str] = []
        for extension in fmh.get("extension") or []:
            if extension.get("url") == PARENT_EXTENSION:
                parent = self._read_parent_extension(extension, contained)
                if parent is None:
                    continue
                parent_type, parent_id = parent
                {"mother": possible_mothers, "father": possible_fathers}.get(parent_type, possible_parents).append(parent_id)
            elif extension.get("url") == OBSERVATION_EXTENSION:
                observation_ref = (extension.get("valueReference") or {}).get("reference")
                observation = contained.get(observation_ref)
                if observation:
                    self._read_observation(observation, person)

        if len(possible_mothers) == 1:
            node.mother = possible_mothers[0]
        if len(possible_fathers) == 1:
            node.father = possible_fathers[0]
        if node.father is None and len(possible_mothers) > 1:
            node.father = possible_mothers[1]
        if node.mother is None and len(possible_fathers) > 1:
            node.mother = possible_fathers[1]
        for parent_id in possible_parents[:2]:
            if node.mother is None:
                node.mother = parent_id
            elif node.father is None:
                node.father = parent_id

        if any(code in ADOPTIVE_PARENT_CODES for code in _parent_type_codes(fmh)):
            person.is_adopted = True
        if is_oneself(fmh) and subject:
            person.gender = {"male": "M", "female": "F"}.get(subject.get("gender"), person.gender)
        return node

    def _read_condition(self, code: dict) -> Optional[str]:
        codings = code.get("coding") or []
        for coding in codings:
            if coding.get("system") == self.legends.disorders.system:
                self.legends.disorders.add_to_cache(coding.get("code"), coding.get("display"))
                return coding.get("code")
        if codings and codings[0].get("display"):
            self.legends.disorders.add_to_cache(codings[0].get("code"), codings[0]["display"])
            return codings[0].get("code")
        return code.get("text")

    def _read_parent_extension(self, extension: dict, contained: Dict[str, dict]):
        """Returns (type, record id) of a genetics-parent extension, type being mother, father or parent."""
        parent_type = None
        reference = None
        for sub in extension.get("extension") or []:
            if sub.get("url") == "type":
                concept = sub.get("valueCodeableConcept") or {}
                for coding in concept.get("coding") or []:
                    if coding.get("system") == ROLE_CODE_SYSTEM:
                        if coding.get("code") in MOTHER_CODES:
                            parent_type = "mother"
                        elif coding.get("code") in FATHER_CODES:
                            parent_type = "father"
                        else:
                            parent_type = "parent"
                        break
                    if coding.get("display"):
                        parent_type = self._type_from_text(coding["display"]) or parent_type
                if parent_type is None and concept.get("text"):
                    parent_type = self._type_from_text(concept["text"])
            elif sub.get("url") == "reference":
                reference = (sub.get("valueReference") or {}).get("reference")
        if not reference:
            return None
        if parent_type in (None, "parent") and reference in contained:
            gender = sex_to_gender(contained[reference].get("sex"))
            parent_type = {"M": "father", "F": "mother"}.get(gender, parent_type)
        return parent_type or "parent", reference.lstrip("#")

    @staticmethod
    def _type_from_text(text: str) -> Optional[str]:
        if MOTHER_RE.search(text):
            return "mother"
        if FATHER_RE.search(text):
            return "father"
        return None

    def _read_observation(self, observation: dict, person: Person):
        observation_id = observation.get("id") or ""
        is_symptom = observation_id.startswith(CLINICAL_OBSERVATION_PREFIX)
        is_gene = observation_id.startswith(GENE_OBSERVATION_PREFIX)
        value = observation.get("valueString")
        concept = observation.get("valueCodeableConcept")
        if value is None and concept:
            for coding in concept.get("coding") or []:
                if coding.get("system") == self.legends.genes.system:
                    is_gene, value = True, coding.get("code")
                    self.legends.genes.add_to_cache(value, coding.get("display"))
                    break
                if coding.get("system") == self.legends.phenotypes.system:
                    is_symptom, value = True, coding.get("code")
                    self.legends.phenotypes.add_to_cache(value, coding.get("display"))
                    break
            if value is None:
                value = concept.get("text")
        if value is None:
            return
        if is_symptom:
            person.hpo_terms.append(value)
        elif is_gene:
            person.candidate_genes.append(value)
