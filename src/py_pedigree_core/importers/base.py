# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rich.console import Console

from ..errors import GraphValidationError, MalformedInputError, ReferenceImportError, StructuralImportError
from ..graph import Graph
from ..models import BadNode, ImportNode, Person, VertexKind
from ..relationship_tracker import RelationshipTracker

console = Console()


class ImportResult(BaseModel):
    """
    The outcome of an import: the reconciled graph and the records that were left out.
    The proband is always vertex 0.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph: Graph
    rejects: List[BadNode] = Field(default_factory=list)


def parse_json(data: Union[str, bytes, dict, list]) -> Any:
    """Parses the raw input of an importer. Already decoded JSON is passed through."""
    if isinstance(data, (dict, list)):
        return data
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedInputError(f"input is not a valid JSON string ({e})") from e


def contained_resources(resource: dict) -> List[dict]:
    """Returns the contained resources of a Composition or List. A missing or null list is empty."""
    contained = resource.get("contained") or []
    if not isinstance(contained, list) or not all(isinstance(entry, dict) for entry in contained):
        raise MalformedInputError("input is not a resource type we understand")
    return contained


@contextmanager
def reading_record(description: str):
    """Reports a record whose fields have the wrong JSON types as malformed input."""
    try:
        yield
    except (TypeError, AttributeError, ValidationError) as e:
        raise MalformedInputError(f"{description} is not shaped as expected ({e})") from e


class IdentityIndex:
    """
    Maps the ways records refer to each other (record id, first name, external id)
    to vertex ids.

    A key claimed by two different persons is dropped and remembered as
    ambiguous, so a later reference to it fails instead of silently picking one.
    """

    def __init__(self):
        self.external_id_to_id: Dict[str, int] = {}
        self.name_to_id: Dict[str, int] = {}
        self.ambiguous: Set[str] = set()

    def register(self, person: Person, vertex: int):
        if person.id:
            if person.id in self.external_id_to_id:
                raise StructuralImportError(f"multiple persons with the same ID [{person.id}]")
            if person.id in self.name_to_id and self.name_to_id[person.id] != vertex:
                del self.name_to_id[person.id]
                self.ambiguous.add(person.id)
            else:
                self.external_id_to_id[person.id] = vertex
        if person.f_name:
            if person.f_name in self.name_to_id and self.name_to_id[person.f_name] != vertex:
                del self.name_to_id[person.f_name]
                self.ambiguous.add(person.f_name)
            elif person.f_name in self.external_id_to_id and self.external_id_to_id[person.f_name] != vertex:
                del self.external_id_to_id[person.f_name]
                self.ambiguous.add(person.f_name)
            else:
                self.name_to_id[person.f_name] = vertex
        # the external id is only a reference key for records without an id
        if person.external_id and not person.id:
            self.external_id_to_id.setdefault(person.external_id, vertex)

    def find(self, reference: str, ref_type: str) -> int:
        """Resolves a reference to a vertex id, raising ReferenceImportError when it cannot."""
        if reference in self.ambiguous:
            raise ReferenceImportError(f"ambiguous reference to [{reference}]")
        if reference in self.external_id_to_id:
            return self.external_id_to_id[reference]
        if reference in self.name_to_id:
            return self.name_to_id[reference]
        raise ReferenceImportError(
            f"[{reference}] is not a valid {ref_type} reference "
            "(does not correspond to a name or an ID of another person)"
        )


def node_reference(node: ImportNode) -> Optional[str]:
    """The key other records use to refer to this one."""
    return node.properties.id or node.properties.f_name or node.properties.external_id


def _link_declared_children(nodes: List[ImportNode]):
    # children declared only from the parent's side become parent references of the child
    by_reference = {node_reference(node): node for node in nodes}
    for node in nodes:
        reference = node_reference(node)
        for child_reference in sorted(node.children):
            child = by_reference.get(child_reference)
            if child is None:
                continue
            declared = [r for r in (child.mother, child.father, *child.parents) if r]
            if reference not in declared and len(declared) < 2:
                child.parents.append(reference)


def build_graph(nodes: List[ImportNode]) -> Graph:
    """
    Builds a validated graph from extracted records in two passes.

    Pass 1 creates a Person vertex per record, in order, so the first record
    becomes vertex 0. Pass 2 resolves parent references, synthesizing a
    placeholder for a missing parent, and attaches each child to the ChildHub
    of its parents. Partner references then become Relationships.
    """
    if not nodes:
        raise ReferenceImportError("no proband found")
    graph = Graph()
    index = IdentityIndex()
    vertex_ids: List[int] = []

    _link_declared_children(nodes)

    # first pass: all persons, so every reference can be resolved afterwards
    for node in nodes:
        if node_reference(node) is None:
            raise ReferenceImportError("a node with no ID or name is found")
        vertex = graph.add_vertex(VertexKind.PERSON, node.properties)
        index.register(node.properties, vertex)
        vertex_ids.append(vertex)

    tracker = RelationshipTracker(graph)
    virtual_parents: Dict[Tuple[int, str], int] = {}

    # second pass: parent links
    for node, person_id in zip(nodes, vertex_ids):
        mother_id = index.find(node.mother, "mother") if node.mother else None
        father_id = index.find(node.father, "father") if node.father else None
        mother_id, father_id = _place_parents(graph, index, node.parents, mother_id, father_id)

        if mother_id is None and father_id is None:
            continue
        if person_id in (mother_id, father_id):
            raise StructuralImportError("a person is declared to be his or her own parent")

        if father_id is None:
            father_id = _virtual_parent(graph, virtual_parents, mother_id, "M")
        elif graph.get_gender(father_id) == "F":
            raise StructuralImportError(
                f"a person declared as female is also declared as being a father ({node.father or father_id})"
            )
        if mother_id is None:
            mother_id = _virtual_parent(graph, virtual_parents, father_id, "F")
        elif graph.get_gender(mother_id) == "M":
            raise StructuralImportError(
                f"a person declared as male is also declared as being a mother ({node.mother or mother_id})"
            )

        childhub = tracker.create_or_get_childhub(mother_id, father_id)
        graph.add_edge(childhub, person_id)

    # partnerships without (known) children
    for node, person_id in zip(nodes, vertex_ids):
        for reference in sorted(node.partners | node.cpartners):
            partner_id = index.find(reference, "partner")
            tracker.create_or_get_relationship(person_id, partner_id)

    try:
        graph.validate()
    except GraphValidationError as e:
        raise StructuralImportError(str(e)) from e
    return graph


def _place_parents(graph: Graph, index: IdentityIndex, references: List[str],
                   mother_id: Optional[int], father_id: Optional[int]) -> Tuple[Optional[int], Optional[int]]:
    """Fills the mother/father slots from untyped parent references, by gender first."""
    undecided = []
    for reference in references:
        parent_id = index.find(reference, "parent")
        if parent_id in (mother_id, father_id):
            continue
        gender = graph.get_gender(parent_id)
        if gender == "M" and father_id is None:
            father_id = parent_id
        elif gender == "F" and mother_id is None:
            mother_id = parent_id
        elif gender == "U":
            undecided.append(parent_id)
    for parent_id in undecided:
        if father_id is None and mother_id != parent_id:
            father_id = parent_id
        elif mother_id is None and father_id != parent_id:
            mother_id = parent_id
    return mother_id, father_id


def _virtual_parent(graph: Graph, cache: Dict[Tuple[int, str], int], known_parent: int, gender: str) -> int:
    """Returns the placeholder partner of known_parent, shared by all of their children."""
    key = (known_parent, gender)
    if key not in cache:
        cache[key] = graph.add_vertex(VertexKind.PERSON, Person(gender=gender, comments="unknown"))
    return cache[key]


def log_import(source: str, result: ImportResult):
    people = sum(1 for _ in result.graph.persons())
    console.log(f"[green]Imported {people} persons from {source}.[/green]")
    if result.rejects:
        console.log(f"[yellow]{len(result.rejects)} record(s) could not be placed and were left out.[/yellow]")
