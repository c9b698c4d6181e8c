# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import Dict, List, Optional

from rich.console import Console

from ..dates import pedigree_date_to_fhir
from ..importers.fhir import (
    ADMINISTRATIVE_GENDER,
    CLINICAL_OBSERVATION_PREFIX,
    GENE_OBSERVATION_PREFIX,
    OBSERVATION_EXTENSION,
    PARENT_EXTENSION,
    ROLE_CODE_SYSTEM,
)
from ..models import Person
from ..roles import classify_roles, role_to_fhir
from .base import BaseExporter, parent_slots, to_json

console = Console()

LOINC_SYSTEM = "http://loinc.org"
SEX_CODES = {"F": ("female", "Female"), "M": ("male", "Male"), "U": ("unknown", "Unknown")}


def role_coding(role: str) -> Dict[str, str]:
    code, display = role_to_fhir(role)
    return {"system": ROLE_CODE_SYSTEM, "code": code, "display": display}


class FhirExporter(BaseExporter):
    """
    Exports the pedigree as a clinical FHIR Composition. Every person becomes a
    contained FamilyMemberHistory whose relationship is its kinship role to the
    proband, with genetics-parent extensions pointing at its parents.
    """

    def export(self, patient_reference: Optional[str] = None) -> str:
        """Returns the Composition as JSON. A patient_reference replaces the contained 'pat' Patient."""
        subject = {"type": "Patient", "reference": patient_reference or "#pat"}
        contained: List[Dict] = []
        patient_entries: List[Dict] = []
        family_entries: List[Dict] = []

        if not patient_reference:
            contained.append(self.build_patient("pat", self.graph.person(0)))

        for i, disorder in enumerate(self.graph.person(0).disorders):
            condition = {
                "resourceType": "Condition",
                "id": f"cond_{i}",
                "subject": subject,
                "code": self.condition_code(disorder),
            }
            contained.append(condition)
            patient_entries.append({"type": "Condition", "reference": f"#{condition['id']}"})

        roles = classify_roles(self.graph)
        for v in self.graph.persons():
            fmh = self.build_family_member(v, roles.get(v, ""), subject)
            contained.append(fmh)
            family_entries.append({"type": "FamilyMemberHistory", "reference": f"#{fmh['id']}"})

            for observation in self.build_observations(v, fmh["id"], subject):
                contained.append(observation)
                reference = {"type": "Observation", "reference": f"#{observation['id']}"}
                fmh.setdefault("extension", []).append({"url": OBSERVATION_EXTENSION, "valueReference": reference})
                (patient_entries if v == 0 else family_entries).append(reference)

        composition = {
            "resourceType": "Composition",
            "status": "preliminary",
            "type": {"coding": [{"system": LOINC_SYSTEM, "code": "11488-4", "display": "Consult note"}]},
            "subject": subject,
            "date": self.timestamp(),
            "title": "Pedigree Details",
            "section": [
                {"title": "Patient Condition", "entry": patient_entries},
                {
                    "title": "Family History",
                    "code": {"coding": [{
                        "system": LOINC_SYSTEM,
                        "code": "10157-6",
                        "display": "History of family member diseases",
                    }]},
                    "entry": family_entries,
                },
            ],
            "contained": contained,
        }
        console.log(f"[green]Exported {len(family_entries)} family members as clinical FHIR.[/green]")
        return to_json(composition)

    def build_patient(self, resource_id: str, person: Person) -> Dict:
        patient = {"id": resource_id, "resourceType": "Patient"}
        patient["gender"] = SEX_CODES[person.gender][0]
        if person.twin_group is not None:
            patient["multipleBirthBoolean"] = True
        if not self.include_personal:
            if person.dod:
                patient["deceasedBoolean"] = True
            return patient

        if pedigree_date_to_fhir(person.dob):
            patient["birthDate"] = pedigree_date_to_fhir(person.dob)
        if pedigree_date_to_fhir(person.dod):
            patient["deceasedDateTime"] = pedigree_date_to_fhir(person.dod)
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
        return patient

    def build_family_member(self, v: int, role: str, subject: Dict) -> Dict:
        person = self.graph.person(v)
        adopted = self.graph.is_adopted(v)
        mother, father, others = parent_slots(self.graph, v)

        extensions = []
        for parent in self.graph.get_parents(v):
            if parent == mother:
                parent_role = "ADOPTMTH" if adopted else "NMTH"
            elif parent == father:
                parent_role = "ADOPTFTH" if adopted else "NFTH"
            else:
                parent_role = "ADOPTPRN" if adopted else "NPRN"
            extensions.append({
                "url": PARENT_EXTENSION,
                "extension": [
                    {"url": "type", "valueCodeableConcept": {"coding": [role_coding(parent_role)]}},
                    {"url": "reference", "valueReference": {"reference": f"#FMH_{parent}"}},
                ],
            })

        name = f"Family member {v}"
        if self.include_personal:
            name = " ".join(n for n in (person.f_name, person.l_name) if n) or name
            if person.l_name_at_b and person.l_name_at_b != (person.l_name or ""):
                name = f"{name} ({person.l_name_at_b})"

        sex_code, sex_display = SEX_CODES[person.gender]
        fmh = {
            "resourceType": "FamilyMemberHistory",
            "id": f"FMH_{v}",
            "status": "completed",
            "patient": subject,
            "name": name,
            "sex": {"coding": [{"system": ADMINISTRATIVE_GENDER, "code": sex_code, "display": sex_display}]},
            "relationship": {"coding": [role_coding(role)]},
        }
        if extensions:
            fmh["extension"] = extensions
        if self.include_personal:
            if pedigree_date_to_fhir(person.dob):
                fmh["bornDate"] = pedigree_date_to_fhir(person.dob)
            if pedigree_date_to_fhir(person.dod):
                fmh["deceasedDate"] = pedigree_date_to_fhir(person.dod)
        if person.life_status == "deceased" and "deceasedDate" not in fmh:
            fmh["deceasedBoolean"] = True
        if self.include_comments and person.comments:
            fmh["note"] = [{"text": person.comments}]
        if person.disorders:
            fmh["condition"] = [{"code": self.condition_code(d)} for d in person.disorders]
        return fmh

    def build_observations(self, v: int, fmh_id: str, subject: Dict) -> List[Dict]:
        """HPO terms and candidate genes of one person; the proband's refer to the subject, others to their record."""
        person = self.graph.person(v)
        target = {"subject": subject} if v == 0 else {
            "focus": {"type": "FamilyMemberHistory", "reference": f"#{fmh_id}"}
        }
        observations = []
        for prefix, legend, terms in (
            (CLINICAL_OBSERVATION_PREFIX, self.legends.phenotypes, person.hpo_terms),
            (GENE_OBSERVATION_PREFIX, self.legends.genes, person.candidate_genes),
        ):
            for j, term in enumerate(terms):
                observation = {"resourceType": "Observation", "id": f"{prefix}_{v}_{j}", "status": "preliminary"}
                observation.update(self.observation_value(legend, term))
                observation.update(target)
                observations.append(observation)
        return observations
