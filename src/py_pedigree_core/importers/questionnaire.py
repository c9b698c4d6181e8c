# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from collections import deque
from typing import Dict, List, Optional, Set

from rich.console import Console

from ..config import settings
from ..dates import split_questionnaire_date
from ..errors import MalformedInputError, ReferenceImportError
from ..models import BadNode, ImportNode, Person
from ..names import DefaultNameSplitter, NameSplitter, SplitName
from .base import ImportResult, build_graph, log_import, parse_json, reading_record

console = Console()

COMMENT_ORDER = ["name", "dob", "problem", "dod"]

GRANDCHILD_RELATIONSHIPS = ["grandson", "granddaughter", "grandchild"]
GREAT_GRANDCHILD_RELATIONSHIPS = ["great-grandson", "great-granddaughter", "great-grandchild"]
NIECE_RELATIONSHIPS = ["niece", "nephew"]
GRANDNIECE_RELATIONSHIPS = ["grandniece", "grandnephew"]
GREAT_GRANDPARENT_RELATIONSHIPS = ["great-grandmother", "great-grandfather"]
GRAND_PIBLING_RELATIONSHIPS = ["granduncle", "grandaunt"]
PIBLING_RELATIONSHIPS = ["aunt", "uncle"]

# generations between the proband and an extended relative, used to pick the
# relative a disconnected group is anchored on
STEPS_TO_PROBAND = {
    "grandson": 2, "granddaughter": 2, "grandchild": 2,
    "great-grandson": 3, "great-granddaughter": 3, "great-grandchild": 3,
    "niece": 3, "nephew": 3,
    "great-grandmother": 3, "great-grandfather": 3,
    "grandniece": 4, "grandnephew": 4, "cousin": 4,
    "granduncle": 4, "grandaunt": 4,
}
DEFAULT_STEPS_TO_PROBAND = 5

# anchor preference for a disconnected group, by tag prefix
ANCHOR_PRIORITY = ["sibling_", "m_mother", "m_father", "f_mother", "f_father", "m_sibling_", "f_sibling_"]


class ExtendedRule:
    """How an extended relative with a given relationship is attached: gender implied, and where to look for the parent."""

    def __init__(self, gender: Optional[str] = None, parent_masks=(), parent_relationships=(), grandparent_masks=()):
        self.gender = gender
        self.parent_masks = list(parent_masks)
        self.parent_relationships = list(parent_relationships)
        self.grandparent_masks = list(grandparent_masks)


def extended_rules(side: str) -> Dict[str, ExtendedRule]:
    """Rules for the m_extended_ (side 'm') or f_extended_ (side 'f') records."""
    extended = f"{side}_extended_"
    grandchild = dict(parent_masks=["child_"], grandparent_masks=["proband", "partner_"])
    great_grandchild = dict(parent_masks=["m_extended_", "f_extended_"],
                            parent_relationships=GRANDCHILD_RELATIONSHIPS, grandparent_masks=["child_"])
    niece = dict(parent_masks=["sibling_"], grandparent_masks=["mother", "father"])
    grandniece = dict(parent_masks=[extended], parent_relationships=NIECE_RELATIONSHIPS,
                      grandparent_masks=["sibling_"])
    grand_pibling = dict(parent_masks=[extended], parent_relationships=GREAT_GRANDPARENT_RELATIONSHIPS,
                         grandparent_masks=[extended])
    return {
        "grandson": ExtendedRule("M", **grandchild),
        "granddaughter": ExtendedRule("F", **grandchild),
        "grandchild": ExtendedRule(None, **grandchild),
        "great-grandson": ExtendedRule("M", **great_grandchild),
        "great-granddaughter": ExtendedRule("F", **great_grandchild),
        "great-grandchild": ExtendedRule(None, **great_grandchild),
        "niece": ExtendedRule("F", **niece),
        "nephew": ExtendedRule("M", **niece),
        "grandniece": ExtendedRule("F", **grandniece),
        "grandnephew": ExtendedRule("M", **grandniece),
        "cousin": ExtendedRule(None, parent_masks=[f"{side}_sibling_"],
                               grandparent_masks=[f"{side}_mother", f"{side}_father"]),
        "great-grandmother": ExtendedRule("F"),
        "great-grandfather": ExtendedRule("M"),
        "granduncle": ExtendedRule("M", **grand_pibling),
        "grandaunt": ExtendedRule("F", **grand_pibling),
        "uncle": ExtendedRule("M"),
        "aunt": ExtendedRule("F"),
    }


class QuestionnaireEntry:
    """One questionnaire answer while its links to the other answers are worked out."""

    def __init__(self, record: dict, person: Person, split_name: SplitName, synthesized: bool = False):
        self.tag: str = record["tag"]
        self.record = record
        self.node = ImportNode(properties=person)
        self.split_name = split_name
        self.synthesized = synthesized

    @property
    def gender(self) -> str:
        return self.node.properties.gender

    @property
    def relationship(self) -> Optional[str]:
        return self.record.get("relationship")

    def has_parent(self) -> bool:
        return bool(self.node.mother or self.node.father or self.node.parents)

    def linked_tags(self) -> Set[str]:
        node = self.node
        tags = set(node.parents) | node.children | node.partners
        tags.update(t for t in (node.mother, node.father) if t)
        return tags


class QuestionnaireImporter:
    """
    Imports the answers of a family history questionnaire.

    Each answer is tagged with its relationship to the proband (proband, mother,
    m_father, sibling_2, f_extended_1, ...). Links are inferred from the tags,
    from the 'relationship' and 'parent' fields of extended relatives, and
    placeholders are synthesized for relatives the answers imply but do not list.
    """

    def __init__(self, name_splitter: Optional[NameSplitter] = None):
        self.name_splitter = name_splitter or DefaultNameSplitter()

    def import_pedigree(self, data) -> ImportResult:
        records = parse_json(data)
        if not isinstance(records, list) or not all(
                isinstance(r, dict) and isinstance(r.get("tag"), str) and r["tag"] for r in records):
            raise MalformedInputError("a questionnaire must be a list of records with a 'tag'")

        entries: Dict[str, QuestionnaireEntry] = {}
        for record in records:
            with reading_record(f"questionnaire record '{record['tag']}'"):
                entry = self.extract_entry(record)
            entries[entry.tag] = entry
        if "proband" not in entries:
            raise MalformedInputError("the questionnaire has no proband record")

        with reading_record("a questionnaire record"):
            for entry in list(entries.values()):
                self._link(entry, entries)
            self._derive_children_and_partners(entries)
            self._add_children_for_partners(entries)

            rejects = self._repair_disconnected(entries)
            for entry in entries.values():
                self._link(entry, entries)
            self._derive_children_and_partners(entries)

        # the proband must become vertex 0
        ordered = [entries["proband"]] + [e for tag, e in entries.items() if tag != "proband"]
        result = ImportResult(graph=build_graph([e.node for e in ordered]), rejects=rejects)
        log_import("questionnaire", result)
        return result

    # --- Extraction ---

    def extract_entry(self, record: dict) -> QuestionnaireEntry:
        """Reads the person fields of one answer. Partial dates and ages go into the comments."""
        tag = record["tag"]
        person = Person(id=tag)
        comments: Dict[str, str] = {}

        if record.get("name") is not None and not isinstance(record["name"], str):
            raise MalformedInputError(f"the name of questionnaire record '{tag}' is not text")
        split_name = self.name_splitter.split(record["name"]) if record.get("name") else SplitName()
        if split_name.first:
            person.f_name = " ".join(split_name.first)
        person.l_name = split_name.surname
        person.l_name_at_b = split_name.maiden
        if record.get("maiden_name"):
            person.l_name_at_b = record["maiden_name"]

        if record.get("sex") in ("M", "F"):
            person.gender = record["sex"]
        elif "father" in tag:
            person.gender = "M"
        elif "mother" in tag:
            person.gender = "F"

        if record.get("deceased"):
            person.life_status = "deceased"

        if record.get("dob"):
            dob = split_questionnaire_date(record["dob"])
            if dob is None:
                comments["dob"] = str(record["dob"])
            elif dob.is_full_date:
                person.dob = f"{dob.month}/{dob.day}/{dob.year}"
            elif dob.month is not None:
                comments["dob"] = f"b. {dob.month}-{dob.year}"
            elif dob.year is not None:
                comments["dob"] = f"b. {dob.year}"
            else:
                comments["dob"] = dob.age

        cause = f" {record['cause_death']}" if record.get("cause_death") else ""
        if record.get("dod"):
            dod = split_questionnaire_date(record["dod"])
            if dod is None:
                comments["dod"] = f"d. {record['dod']}{cause}"
            elif dod.is_full_date:
                person.dod = f"{dod.month}/{dod.day}/{dod.year}"
                if cause:
                    comments["dod"] = f"d. {dod.month}-{dod.year}{cause}"
            elif dod.month is not None:
                comments["dod"] = f"d. {dod.month}-{dod.year}{cause}"
            elif dod.year is not None:
                comments["dod"] = f"d. {dod.year}{cause}"
            else:
                comments["dod"] = f"d. {dod.age}{cause}"
        elif cause:
            comments["dod"] = f"d.{cause}"

        problems = record.get("problem") or []
        if isinstance(problems, str):
            problems = [problems]
        if not isinstance(problems, list) or not all(isinstance(p, str) for p in problems):
            raise MalformedInputError(f"the problems of questionnaire record '{tag}' are not a list of text")
        person.disorders = list(problems)
        if record.get("problem_age") and problems:
            # the age belongs to the first problem
            comments["problem"] = f"{problems[0]} dx {record['problem_age']}"

        lines = [comments[key] for key in COMMENT_ORDER if comments.get(key)]
        if lines:
            person.comments = "\n".join(lines)
        return QuestionnaireEntry(record, person, split_name)

    # --- Linking ---

    @staticmethod
    def _attach_parent(child: QuestionnaireEntry, parent: QuestionnaireEntry):
        if parent.gender == "M":
            child.node.father = parent.tag
        elif parent.gender == "F":
            child.node.mother = parent.tag
        elif parent.tag not in child.node.parents:
            child.node.parents.append(parent.tag)

    @staticmethod
    def _set_parents(entry: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry],
                     mother_tag: str, father_tag: str, sibling_type: Optional[str] = None):
        """Links a sibling-style record to a couple; 'mat' and 'pat' keep only one side."""
        if sibling_type != "pat" and mother_tag in entries:
            entry.node.mother = mother_tag
        if sibling_type != "mat" and father_tag in entries:
            entry.node.father = father_tag

    def _link(self, entry: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry]):
        tag = entry.tag
        proband = entries["proband"]
        if tag == "proband":
            self._set_parents(entry, entries, "mother", "father")
        elif tag == "mother":
            self._set_parents(entry, entries, "m_mother", "m_father")
        elif tag == "father":
            self._set_parents(entry, entries, "f_mother", "f_father")
        elif tag in ("m_mother", "m_father"):
            self._find_great_grandparents(entry, entries, "m")
        elif tag in ("f_mother", "f_father"):
            self._find_great_grandparents(entry, entries, "f")
        elif tag.startswith("child_"):
            proband_is_mother = proband.gender != "M"
            other_tag = entry.record.get("parent_tag")
            if other_tag not in entries or other_tag == "proband":
                other_tag = "partner_1" if "partner_1" in entries else None
            if proband_is_mother:
                entry.node.mother = "proband"
                entry.node.father = other_tag
            else:
                entry.node.father = "proband"
                entry.node.mother = other_tag
        elif tag.startswith("partner_"):
            opposite = {"M": "F", "F": "M"}.get(proband.gender)
            if opposite:
                entry.node.properties.gender = opposite
        elif tag.startswith("sibling_"):
            self._set_parents(entry, entries, "mother", "father", entry.record.get("sibling_type"))
        elif tag.startswith("m_sibling_"):
            self._set_parents(entry, entries, "m_mother", "m_father", entry.record.get("sibling_type"))
        elif tag.startswith("f_sibling_"):
            self._set_parents(entry, entries, "f_mother", "f_father", entry.record.get("sibling_type"))
        elif tag.startswith("m_extended_"):
            self._link_extended(entry, entries, "m")
        elif tag.startswith("f_extended_"):
            self._link_extended(entry, entries, "f")

    def _link_extended(self, entry: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry], side: str):
        if entry.has_parent():
            return
        relationship = entry.relationship
        rule = extended_rules(side).get(relationship) if relationship else None
        if rule is not None:
            if rule.gender and entry.gender == "U":
                entry.node.properties.gender = rule.gender
            if relationship in PIBLING_RELATIONSHIPS:
                self._set_parents(entry, entries, f"{side}_mother", f"{side}_father")
                return
        elif relationship is None and entry.record.get("parent"):
            rule = ExtendedRule(parent_masks=["child_", "sibling_", f"{side}_sibling_", f"{side}_extended_"])
        if rule is None or not rule.parent_masks:
            return

        parent_name = entry.record.get("parent")
        split_parent = self.name_splitter.split(parent_name) if parent_name else SplitName()
        parent_matches = self._rank_candidates(entry, entries, split_parent, rule.parent_masks, rule.parent_relationships)
        grandparent_matches = self._rank_candidates(entry, entries, split_parent, rule.grandparent_masks, [])
        if not parent_matches:
            return
        if grandparent_matches and grandparent_matches[0][0] > parent_matches[0][0]:
            # the named person is more likely a grandparent, leave the record for placeholder repair
            return
        self._attach_parent(entry, parent_matches[0][1])

    @staticmethod
    def _rank_candidates(entry: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry], split_parent: SplitName,
                         masks: List[str], relationships: List[str]) -> List[tuple]:
        """Scores every record whose tag matches a mask as the parent named on an extended record."""
        parent_name = entry.record.get("parent")
        scored = []
        for tag, candidate in entries.items():
            if candidate is entry or not any(tag.startswith(mask) for mask in masks):
                continue
            is_extended = tag.startswith("m_extended_") or tag.startswith("f_extended_")
            if relationships and is_extended and candidate.relationship not in relationships:
                continue
            if parent_name and parent_name == candidate.record.get("name"):
                scored.append((20, candidate))
                continue
            weight = 0
            other = candidate.split_name
            if split_parent.first and other.first and split_parent.first[0] == other.first[0]:
                weight += 2
            if split_parent.surname and split_parent.surname == other.surname:
                weight += 1
            if other.nickname and parent_name == other.nickname:
                weight += 2
            if split_parent.surname and split_parent.surname == candidate.node.properties.l_name_at_b:
                weight += 1
            if relationships and is_extended:
                weight += 2
            scored.append((weight, candidate))
        # stable, so ties keep questionnaire order
        scored.sort(key=lambda item: -item[0])
        return scored

    def _find_great_grandparents(self, entry: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry], side: str):
        if entry.has_parent():
            return
        grandmother = entries.get(f"{side}_mother")
        grandfather = entries.get(f"{side}_father")
        for candidate_tag, candidate in entries.items():
            if not candidate_tag.startswith(f"{side}_extended_"):
                continue
            if candidate.relationship == "great-grandmother":
                self._place_great_grandparent(grandmother, grandfather, candidate, "mother")
            elif candidate.relationship == "great-grandfather":
                self._place_great_grandparent(grandmother, grandfather, candidate, "father")

    @staticmethod
    def _place_great_grandparent(grandmother: Optional[QuestionnaireEntry], grandfather: Optional[QuestionnaireEntry],
                                 great_grandparent: QuestionnaireEntry, slot: str):
        """Decides which grandparent a great-grandparent record belongs to, by name."""
        grandparents = [g for g in (grandmother, grandfather) if g is not None]
        if any(getattr(g.node, slot) == great_grandparent.tag for g in grandparents):
            return

        def assign(grandparent: QuestionnaireEntry):
            if getattr(grandparent.node, slot) is None:
                setattr(grandparent.node, slot, great_grandparent.tag)

        named = great_grandparent.record.get("parent")
        if named:
            for grandparent in grandparents:
                if named == grandparent.record.get("name"):
                    return assign(grandparent)
            for grandparent in grandparents:
                if grandparent.split_name.first and named == grandparent.split_name.first[0]:
                    return assign(grandparent)
        surname = great_grandparent.split_name.surname
        if not surname:
            return
        if grandmother is not None and surname == grandmother.record.get("maiden_name"):
            assign(grandmother)
        elif grandfather is not None and surname == grandfather.split_name.surname:
            assign(grandfather)
        elif grandmother is not None and surname == grandmother.split_name.surname:
            assign(grandmother)

    @staticmethod
    def _derive_children_and_partners(entries: Dict[str, QuestionnaireEntry]):
        """Rebuilds the children and partners sets from the parent links."""
        for entry in entries.values():
            entry.node.children = set()
            entry.node.partners = set()
        for entry in entries.values():
            node = entry.node
            parents = [t for t in (node.mother, node.father) if t] + list(node.parents)
            parents = [t for t in dict.fromkeys(parents) if t in entries]
            for parent in parents:
                entries[parent].node.children.add(entry.tag)
            if len(parents) == 2:
                entries[parents[0]].node.partners.add(parents[1])
                entries[parents[1]].node.partners.add(parents[0])

    def _add_children_for_partners(self, entries: Dict[str, QuestionnaireEntry]):
        """A partner of the proband with no listed children gets a placeholder child, which creates the couple."""
        max_child = 0
        for tag in entries:
            suffix = tag[len("child_"):]
            if tag.startswith("child_") and suffix.isdigit():
                max_child = max(max_child, int(suffix))
        for tag in [t for t in entries if t.startswith("partner_")]:
            if entries[tag].node.children:
                continue
            max_child += 1
            child = self._synthesize(f"child_{max_child}", "U", parent_tag=tag)
            entries[child.tag] = child
            self._link(child, entries)
        self._derive_children_and_partners(entries)

    # --- Disconnection repair ---

    @staticmethod
    def _reachable(start: str, entries: Dict[str, QuestionnaireEntry]) -> Set[str]:
        seen = {start}
        queue = deque([start])
        while queue:
            for tag in entries[queue.popleft()].linked_tags():
                if tag in entries and tag not in seen:
                    seen.add(tag)
                    queue.append(tag)
        return seen

    @staticmethod
    def _best_anchor(cluster: List[QuestionnaireEntry]) -> QuestionnaireEntry:
        for prefix in ANCHOR_PRIORITY:
            for entry in cluster:
                if entry.tag.startswith(prefix):
                    return entry
        candidates = [e for e in cluster if e.tag.startswith("m_extended_")] \
            or [e for e in cluster if e.tag.startswith("f_extended_")] \
            or cluster
        # the relative furthest from the proband implies the most placeholders
        return max(candidates, key=lambda e: STEPS_TO_PROBAND.get(e.relationship, DEFAULT_STEPS_TO_PROBAND))

    def _repair_disconnected(self, entries: Dict[str, QuestionnaireEntry]) -> List[BadNode]:
        """
        Anchors every group of records not connected to the proband, synthesizing the
        relatives that connect it. Records that cannot be placed are rejected.
        """
        connected = self._reachable("proband", entries)
        handled = set(connected)
        synthesized: Dict[str, QuestionnaireEntry] = {}
        rejects: List[BadNode] = []
        for tag in list(entries):
            if tag in handled:
                continue
            cluster_tags = self._reachable(tag, entries)
            handled |= cluster_tags
            cluster = [entries[t] for t in entries if t in cluster_tags]
            anchor = self._best_anchor(cluster)
            reason = self._synthesize_missing(anchor, entries, synthesized)
            if reason is None:
                continue
            for entry in cluster:
                rejects.append(BadNode(reference=entry.tag, reason=reason, record=entry.record))
                del entries[entry.tag]

        if rejects:
            if settings.bad_node_policy == "raise":
                first = rejects[0]
                raise ReferenceImportError(f"[{first.reference}] cannot be placed in the pedigree: {first.reason}")
            for reject in rejects:
                console.log(f"[yellow]Left out questionnaire record '{reject.reference}': {reject.reason}[/yellow]")

        entries.update(synthesized)
        for entry in synthesized.values():
            self._connect_synthesized(entry, entries)
        return rejects

    def _synthesize(self, tag: str, gender: str, relationship: Optional[str] = None,
                    parent_tag: Optional[str] = None) -> QuestionnaireEntry:
        record = {"tag": tag}
        if relationship:
            record["relationship"] = relationship
        if parent_tag:
            record["parent_tag"] = parent_tag
        return QuestionnaireEntry(record, Person(id=tag, gender=gender), SplitName(), synthesized=True)

    @staticmethod
    def _next_tag(prefix: str, entries: Dict[str, QuestionnaireEntry], synthesized: Dict[str, QuestionnaireEntry]) -> str:
        index = 1
        while f"{prefix}{index}" in entries or f"{prefix}{index}" in synthesized:
            index += 1
        return f"{prefix}{index}"

    def _synthesize_missing(self, anchor: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry],
                            synthesized: Dict[str, QuestionnaireEntry]) -> Optional[str]:
        """
        Adds the placeholders that connect anchor to the proband's family, working
        through a queue since each placeholder may need placeholders of its own.
        Returns the reason the anchor cannot be placed, or None.
        """
        queue = deque([anchor])

        def add(tag: str, gender: str, relationship: Optional[str] = None):
            if tag in entries or tag in synthesized:
                return
            console.log(f"Adding placeholder '{tag}' to connect '{anchor.tag}'.")
            synthesized[tag] = self._synthesize(tag, gender, relationship)
            queue.append(synthesized[tag])

        while queue:
            entry = queue.popleft()
            tag = entry.tag
            if tag in ("m_mother", "m_father"):
                add("mother", "F")
            elif tag in ("f_mother", "f_father"):
                add("father", "M")
            elif tag.startswith("sibling_"):
                add("mother", "F")
                add("father", "M")
            elif tag.startswith("m_sibling_") or tag.startswith("f_sibling_"):
                side = tag[0]
                add(f"{side}_mother", "F")
                add(f"{side}_father", "M")
            elif tag.startswith("m_extended_") or tag.startswith("f_extended_"):
                side = tag[0]
                extended = f"{side}_extended_"
                relationship = entry.relationship
                if relationship is None:
                    return "extended relative without a relationship"
                if relationship in GRANDCHILD_RELATIONSHIPS:
                    add("child_1", "U")
                elif relationship in GREAT_GRANDCHILD_RELATIONSHIPS:
                    add(self._next_tag(extended, entries, synthesized), "U", "grandchild")
                elif relationship in NIECE_RELATIONSHIPS:
                    add("sibling_1", "U")
                elif relationship in GRANDNIECE_RELATIONSHIPS:
                    add(self._next_tag(extended, entries, synthesized), "U", "niece")
                elif relationship == "cousin":
                    add(f"{side}_sibling_1", "U")
                elif relationship in GREAT_GRANDPARENT_RELATIONSHIPS + PIBLING_RELATIONSHIPS:
                    add(f"{side}_mother", "F")
                    add(f"{side}_father", "M")
                elif relationship in GRAND_PIBLING_RELATIONSHIPS:
                    add(self._next_tag(extended, entries, synthesized), "F", "great-grandmother")
                else:
                    return f"unknown relationship '{relationship}'"
            elif tag != "proband" and tag not in ("mother", "father") \
                    and not tag.startswith("child_") and not tag.startswith("partner_"):
                return f"unknown tag '{tag}'"
        return None

    def _connect_synthesized(self, entry: QuestionnaireEntry, entries: Dict[str, QuestionnaireEntry]):
        """Points the records a placeholder stands in for at it. Its own parents come from the normal links."""
        tag = entry.tag

        def adopt(children_filter):
            for other in entries.values():
                if other is not entry and not other.has_parent() and children_filter(other):
                    self._attach_parent(other, entry)

        def extended_with(relationships, side=None):
            def test(other: QuestionnaireEntry) -> bool:
                prefixes = (f"{side}_extended_",) if side else ("m_extended_", "f_extended_")
                return other.tag.startswith(prefixes) and other.relationship in relationships
            return test

        if tag in ("mother", "father"):
            excluded = "pat" if tag == "mother" else "mat"
            for other in entries.values():
                if other.tag == "proband" or (other.tag.startswith("sibling_")
                                             and other.record.get("sibling_type") != excluded):
                    setattr(other.node, tag, tag)
        elif tag in ("m_mother", "m_father", "f_mother", "f_father"):
            side, slot = tag.split("_")
            excluded = "pat" if slot == "mother" else "mat"
            side_parent = "mother" if side == "m" else "father"
            grandparents = [entries[t].node for t in (f"{side}_mother", f"{side}_father") if t in entries]
            for other in list(entries.values()):
                if other.tag == side_parent:
                    setattr(other.node, slot, tag)
                elif other.tag.startswith(f"{side}_sibling_") and other.record.get("sibling_type") != excluded:
                    setattr(other.node, slot, tag)
                elif other.tag.startswith(f"{side}_extended_") and other.relationship in PIBLING_RELATIONSHIPS:
                    setattr(other.node, slot, tag)
                elif other.tag.startswith(f"{side}_extended_") and other.relationship in GREAT_GRANDPARENT_RELATIONSHIPS:
                    if any(other.tag in (g.mother, g.father) for g in grandparents):
                        continue
                    # unplaced great-grandparents go to the first synthesized grandparent
                    great_slot = "mother" if other.relationship == "great-grandmother" else "father"
                    if getattr(entry.node, great_slot) is None:
                        setattr(entry.node, great_slot, other.tag)
        elif tag.startswith("child_"):
            adopt(extended_with(GRANDCHILD_RELATIONSHIPS))
        elif tag.startswith("sibling_"):
            adopt(extended_with(NIECE_RELATIONSHIPS))
        elif tag.startswith("m_sibling_") or tag.startswith("f_sibling_"):
            adopt(extended_with(["cousin"], tag[0]))
        elif tag.startswith("m_extended_") or tag.startswith("f_extended_"):
            side = tag[0]
            if entry.relationship == "grandchild":
                adopt(extended_with(GREAT_GRANDCHILD_RELATIONSHIPS, side))
            elif entry.relationship == "niece":
                adopt(extended_with(GRANDNIECE_RELATIONSHIPS, side))
            elif entry.relationship == "great-grandmother":
                adopt(extended_with(GRAND_PIBLING_RELATIONSHIPS, side))
                for grandparent_tag in (f"{side}_mother", f"{side}_father"):
                    grandparent = entries.get(grandparent_tag)
                    if grandparent is not None and grandparent.node.mother is None:
                        grandparent.node.mother = tag
                        break
