# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..config import settings
from ..graph import Graph
from ..terminology import Legends, TermLegend

PRIVACY_LEVELS = ("all", "nopersonal", "minimal")


class BaseExporter:
    """
    Shared state of the exporters: the graph, the privacy level and the term legends.

    Privacy 'all' emits everything, 'nopersonal' drops names and dates,
    'minimal' also drops free-text comments.
    """

    def __init__(self, graph: Graph, privacy: Optional[str] = None, legends: Optional[Legends] = None,
                 now: Optional[datetime] = None):
        self.graph = graph
        self.privacy = privacy or settings.default_privacy
        if self.privacy not in PRIVACY_LEVELS:
            raise ValueError(f"Unknown privacy level '{self.privacy}', expected one of {', '.join(PRIVACY_LEVELS)}")
        self.legends = legends or Legends.from_settings()
        self.now = now

    @property
    def include_personal(self) -> bool:
        return self.privacy == "all"

    @property
    def include_comments(self) -> bool:
        return self.privacy != "minimal"

    def timestamp(self) -> str:
        now = self.now or datetime.now().astimezone()
        return now.isoformat(timespec="seconds")

    def condition_code(self, disorder: str) -> Dict:
        """A disorder without a display of its own is written as text, otherwise as a coding."""
        display = self.legends.disorders.get_name(disorder)
        if display == disorder:
            return {"text": disorder}
        return {"coding": [{"system": self.legends.disorders.system, "code": disorder, "display": display}]}

    @staticmethod
    def observation_value(legend: TermLegend, term: str) -> Dict:
        display = legend.get_name(term)
        if display == term:
            return {"valueString": term}
        return {"valueCodeableConcept": {"coding": [{"system": legend.system, "code": term, "display": display}]}}


def parent_slots(graph: Graph, v: int) -> Tuple[Optional[int], Optional[int], List[int]]:
    """
    Returns (mother, father, other parents). When only one slot is decided by
    gender the remaining parent takes the other slot.
    """
    parents = graph.get_parents(v)
    mother, father = graph.get_mother(v), graph.get_father(v)
    if len(parents) == 2:
        if mother is not None and father is None:
            father = parents[1] if parents[0] == mother else parents[0]
        elif father is not None and mother is None:
            mother = parents[1] if parents[0] == father else parents[0]
    return mother, father, [p for p in parents if p not in (mother, father)]


def to_json(resource) -> str:
    return json.dumps(resource, indent=2)
