# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from rich.console import Console

from ..config import settings
from ..dates import fhir_date_to_pedigree, fhir_datetime_to_pedigree
from ..errors import MalformedInputError
from ..graph import Graph
from ..models import ImportNode, Person
from ..terminology import Legends
from .base import ImportResult, build_graph, contained_resources, log_import, parse_json, reading_record
from .fhir import FMH_NAME_RE, FhirImporter

console = Console()

PEDIGREE_PROFILE = "http://purl.org/ga4gh/pedigree-fhir-ig/StructureDefinition/Pedigree"
REL_SYSTEM = "http://purl.org/ga4gh/rel.fhir"
SNOMED_SYSTEM = "http://snomed.info/sct"
PATIENT_RECORD_EXTENSION = "http://hl7.org/fhir/StructureDefinition/familymemberhistory-patient-record"
UNBORN_EXTENSION = "http://purl.org/ga4gh/pedigree-fhir-ig/StructureDefinition/patient-unborn"
EXTERNAL_ID_SYSTEM = "https://github.com/phenotips/open-pedigree?externalID"

# later entries win
NAME_USE_ORDER = [
    "anonymous", "temp", "expired_nickname", "expired_", "expired_usual", "expired_official",
    "maiden", "old", "nickname", "", "usual", "official",
]
DECEASED_RE = re.compile(r"(stillborn|miscarriage|aborted|unborn)( ([1-9][0-9]?) weeks)?")

SNOMED_CARRIER = "87955000"
SNOMED_PRESYMPTOMATIC = "24800002"
SNOMED_INFERTILE = "8619003"
SNOMED_NUMBER_OF_OFFSPRING = "224118004"


class TwinTracker:
    """
    Assigns twin group ids (from 1) to node indexes, merging groups when a
    twin link joins two existing groups.
    """

    def __init__(self):
        self.next_group_id = 1
        self.lookup: Dict[int, int] = {}
        self.groups: Dict[int, List[int]] = {}

    def add_pair(self, first: int, second: int):
        first_group = self.lookup.get(first)
        second_group = self.lookup.get(second)
        if first_group is None and second_group is None:
            group = self.next_group_id
            self.next_group_id += 1
            self.lookup[first] = self.lookup[second] = group
            self.groups[group] = [first, second]
        elif first_group is None:
            self.lookup[first] = second_group
            self.groups[second_group].append(first)
        elif second_group is None:
            self.lookup[second] = first_group
            self.groups[first_group].append(second)
        elif first_group != second_group:
            for member in self.groups.pop(second_group):
                self.lookup[member] = first_group
                self.groups[first_group].append(member)


def _subject_reference(resource: dict) -> Optional[str]:
    subject = resource.get("subject")
    if isinstance(subject, dict):
        subject = subject.get("reference")
    return _normalize_reference(subject)


def _normalize_reference(reference: Optional[str]) -> Optional[str]:
    if reference and reference.startswith("Patient/"):
        return "#" + reference[len("Patient/"):]
    return reference


def is_ga4gh_pedigree(resource: dict) -> bool:
    profiles = (resource.get("meta") or {}).get("profile") or []
    return resource.get("resourceType") == "Composition" and PEDIGREE_PROFILE in profiles


class Ga4ghImporter:
    """
    Imports a GA4GH pedigree Composition: Patient resources for individuals,
    FamilyMemberHistory resources for the links between them, and Condition
    and Observation resources for their clinical data.
    Compositions and Lists without the pedigree profile go to the clinical FHIR importer.
    """

    def __init__(self, legends: Optional[Legends] = None, now: Optional[datetime] = None):
        self.legends = legends or Legends.from_settings()
        self.now = now

    def import_pedigree(self, data) -> ImportResult:
        resource = parse_json(data)
        if not isinstance(resource, dict):
            raise MalformedInputError("input is not a resource type we understand")
        with reading_record("the Composition"):
            is_pedigree = is_ga4gh_pedigree(resource)
        if not is_pedigree:
            if resource.get("resourceType") in ("Composition", "List"):
                console.log("Composition does not declare the GA4GH pedigree profile, reading it as clinical FHIR.")
                return FhirImporter(self.legends).import_pedigree(resource)
            raise MalformedInputError("input is not a resource type we understand")

        by_type: Dict[str, List[dict]] = {}
        nodes: List[ImportNode] = []
        node_by_reference: Dict[str, int] = {}
        twins = TwinTracker()
        consanguineous: List[Tuple[int, int]] = []
        with reading_record("a pedigree resource"):
            for entry in contained_resources(resource):
                by_type.setdefault(entry.get("resourceType"), []).append(entry)

            # the proband must become vertex 0
            proband_reference = _subject_reference(resource)
            patients = sorted(by_type.get("Patient", []),
                              key=lambda p: 0 if "#" + str(p.get("id")) == proband_reference else 1)

            for patient in patients:
                node_by_reference["#" + str(patient.get("id"))] = len(nodes)
                nodes.append(ImportNode(properties=self.extract_patient(patient)))

            for fmh in by_type.get("FamilyMemberHistory", []):
                self._read_relationship(fmh, nodes, node_by_reference, twins, consanguineous)
            for condition in by_type.get("Condition", []):
                self._read_condition(condition, nodes, node_by_reference)
            for observation in by_type.get("Observation", []):
                self._read_observation(observation, nodes, node_by_reference)

        for index, group in twins.lookup.items():
            nodes[index].properties.twin_group = group

        graph = build_graph(nodes)
        self.mark_consanguinity(graph, consanguineous)
        result = ImportResult(graph=graph)
        log_import("GA4GH pedigree", result)
        return result

    def extract_patient(self, patient: dict) -> Person:
        person = Person(id=patient.get("id"))
        person.gender = {"male": "M", "female": "F"}.get(patient.get("gender"), "U")
        self._read_names(patient.get("name") or [], person)

        for identifier in patient.get("identifier") or []:
            if identifier.get("system") == EXTERNAL_ID_SYSTEM:
                person.external_id = identifier.get("value")
                break

        person.dob = fhir_date_to_pedigree(patient.get("birthDate"))
        person.dod = fhir_datetime_to_pedigree(patient.get("deceasedDateTime"))
        if patient.get("deceasedBoolean") or person.dod:
            person.life_status = "deceased"

        check_unborn_extension = True
        if patient.get("deceasedString"):
            match = DECEASED_RE.search(patient["deceasedString"])
            if match is None:
                person.life_status = "deceased"
            else:
                check_unborn_extension = False
                person.life_status = match.group(1)
                if match.group(3):
                    person.gestation_age = int(match.group(3))
        if check_unborn_extension:
            for extension in patient.get("extension") or []:
                if extension.get("url") == UNBORN_EXTENSION:
                    if extension.get("valueBoolean"):
                        person.life_status = "unborn"
                    break
        return person

    def _read_names(self, names: List[dict], person: Person):
        now = self.now or datetime.now(timezone.utc)
        best_first = best_last = best_text = -2
        text = ""
        for name in names:
            use = name.get("use") or ""
            end = (name.get("period") or {}).get("end")
            if end and _parse_instant(end) is not None and _parse_instant(end) < now:
                use = "expired_" + use
            rank = NAME_USE_ORDER.index(use) if use in NAME_USE_ORDER else -1
            if name.get("family") and rank > best_last:
                person.l_name = name["family"]
                best_last = rank
            if name.get("given") and rank > best_first:
                person.f_name = " ".join(name["given"])
                best_first = rank
            if name.get("text") and rank > best_text:
                text = name["text"]
                best_text = rank
        if (best_first == -2 or best_last == -2) and best_text > -2:
            match = FMH_NAME_RE.match(text)
            if match is None:
                if best_first == -2:
                    person.f_name = text
            else:
                if best_first == -2:
                    person.f_name = match.group(1)
                if best_last == -2:
                    person.l_name = match.group(3)

    def _read_relationship(self, fmh: dict, nodes: List[ImportNode], node_by_reference: Dict[str, int],
                           twins: TwinTracker, consanguineous: List[Tuple[int, int]]):
        """Applies one relationship record: the record's relative is the <code> of its patient."""
        first_ref = _normalize_reference((fmh.get("patient") or {}).get("reference"))
        second_ref = None
        for extension in fmh.get("extension") or []:
            if extension.get("url") == PATIENT_RECORD_EXTENSION:
                second_ref = _normalize_reference((extension.get("valueReference") or {}).get("reference"))
                break
        rel = None
        for coding in (fmh.get("relationship") or {}).get("coding") or []:
            if coding.get("system") == REL_SYSTEM:
                rel = coding.get("code")
                break
        if rel is None or first_ref not in node_by_reference or second_ref not in node_by_reference:
            return

        first_index = node_by_reference[first_ref]
        second_index = node_by_reference[second_ref]
        first, second = nodes[first_index], nodes[second_index]
        second_id = second.properties.id

        if rel == "REL:027":
            if first.mother is not None and first.father is None:
                first.father = first.mother
            first.mother = second_id
        elif rel == "REL:028":
            if first.father is not None and first.mother is None:
                first.mother = first.father
            first.father = second_id
        elif rel in ("REL:003", "REL:022"):
            if rel == "REL:022":
                first.properties.is_adopted = True
            gender = second.properties.gender
            if gender == "M" and first.father is None:
                first.father = second_id
            elif gender == "F" and first.mother is None:
                first.mother = second_id
            elif first.father is None:
                first.father = second_id
            elif first.mother is None:
                first.mother = second_id
        elif rel == "REL:026":
            first.partners.add(second_id)
            second.partners.add(first.properties.id)
        elif rel == "REL:030":
            first.cpartners.add(second_id)
            second.cpartners.add(first.properties.id)
            consanguineous.append((first_index, second_index))
        elif rel in ("REL:009", "REL:010", "REL:011"):
            first.properties.monozygotic = rel == "REL:010"
            second.properties.monozygotic = rel == "REL:010"
            twins.add_pair(first_index, second_index)

    def _read_condition(self, condition: dict, nodes: List[ImportNode], node_by_reference: Dict[str, int]):
        reference = _subject_reference(condition)
        code = condition.get("code")
        if reference not in node_by_reference or not code:
            return
        person = nodes[node_by_reference[reference]].properties
        disorder = None
        for coding in code.get("coding") or []:
            if coding.get("system") == self.legends.disorders.system:
                disorder = coding.get("code")
                self.legends.disorders.add_to_cache(disorder, coding.get("display"))
                break
        if disorder is None:
            disorder = code.get("text")
        if disorder:
            person.disorders.append(disorder)

    def _read_observation(self, observation: dict, nodes: List[ImportNode], node_by_reference: Dict[str, int]):
        reference = _subject_reference(observation)
        if reference not in node_by_reference:
            return
        person = nodes[node_by_reference[reference]].properties

        for coding in (observation.get("valueCodeableConcept") or {}).get("coding") or []:
            system, code = coding.get("system"), coding.get("code")
            if system == SNOMED_SYSTEM and code == SNOMED_CARRIER:
                person.carrier_status = "carrier"
                return
            if system == SNOMED_SYSTEM and code == SNOMED_PRESYMPTOMATIC:
                person.carrier_status = "presymptomatic"
                return
            if system == self.legends.genes.system:
                person.candidate_genes.append(code)
                self.legends.genes.add_to_cache(code, coding.get("display"))
                return
            if system == self.legends.phenotypes.system:
                person.hpo_terms.append(code)
                self.legends.phenotypes.add_to_cache(code, coding.get("display"))
                return

        for coding in (observation.get("code") or {}).get("coding") or []:
            if coding.get("system") != SNOMED_SYSTEM:
                continue
            if coding.get("code") == SNOMED_INFERTILE:
                person.childless_status = "infertile"
                return
            if coding.get("code") == SNOMED_NUMBER_OF_OFFSPRING and observation.get("valueInteger") == 0:
                person.childless_status = "childless"
                return

        value = observation.get("valueString")
        observation_id = observation.get("id") or ""
        if value:
            if "_clinical_" in observation_id:
                person.hpo_terms.append(value)
            elif "_gene_" in observation_id:
                person.candidate_genes.append(value)

    @staticmethod
    def mark_consanguinity(graph: Graph, pairs: List[Tuple[int, int]]):
        """
        Declared consanguineous couples become 'Y', unless a shared ancestor is
        already in the pedigree, in which case the automatic 'A' captures it.
        Node indexes equal vertex ids, persons being created first and in order.
        """
        for first, second in pairs:
            relationship = graph.get_relationship_node(first, second)
            if relationship is None:
                continue
            properties = graph.properties(relationship)
            if properties.consangr == "Y":
                continue
            if graph.share_ancestor(first, second, settings.consanguinity_depth):
                properties.consangr = "A"
            else:
                properties.consangr = "Y"


def _parse_instant(text: str) -> Optional[datetime]:
    """Parses a FHIR date or dateTime as an aware datetime, None when it cannot."""
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
