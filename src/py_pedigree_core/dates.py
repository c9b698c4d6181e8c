# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import re
from typing import Optional
from pydantic import BaseModel

_YEAR = r"([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"

# YYYY[-M[M][-D[D]]], found anywhere in the text
FHIR_DATE_RE = re.compile(_YEAR + r"(-(0[1-9]|1[0-2]|[1-9])(-(0[1-9]|[1-2][0-9]|3[0-1]|[1-9]))?)?")
# FHIR dateTime, the time part is optional and ignored
FHIR_DATETIME_RE = re.compile(
    _YEAR + r"(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1])"
    r"(T([01][0-9]|2[0-3]):[0-5][0-9]:([0-5][0-9]|60)(\.[0-9]+)?(Z|(\+|-)((0[0-9]|1[0-3]):[0-5][0-9]|14:00)))?)?)?"
)
PEDIGREE_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{1,4})\s*$")

QUESTIONNAIRE_YMD_RE = re.compile("^" + _YEAR + r"(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1]))?)?$")
QUESTIONNAIRE_DMY_RE = re.compile(r"^(((0?[1-9]|[1-2][0-9]|3[0-1])-)?(0?[1-9]|1[0-2])-)?" + _YEAR + "$")
AGE_PATTERNS = [
    (re.compile(r"^([0-9]{1,3})\s*(y|yrs|years)$", re.IGNORECASE), "y"),
    (re.compile(r"^([0-9]{1,2})\s*(m|mths|months)$", re.IGNORECASE), "m"),
    (re.compile(r"^([0-9]{1,2})\s*(w|wks|weeks)$", re.IGNORECASE), "w"),
]


class DateParts(BaseModel):
    """
    A partially known date, or an age such as '43y', as written on a questionnaire.
    """
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    age: Optional[str] = None

    @property
    def is_full_date(self) -> bool:
        return self.year is not None and self.month is not None and self.day is not None


def _to_pedigree(match: Optional[re.Match]) -> Optional[str]:
    if match is None:
        return None
    year = match.group(1)
    month = match.group(5) or "01"
    day = match.group(7) or "01"
    return f"{month}/{day}/{year}"


def fhir_date_to_pedigree(text: Optional[str]) -> Optional[str]:
    """Converts a FHIR date (YYYY, YYYY-MM or YYYY-MM-DD) to M/D/YYYY, defaulting missing parts to 01."""
    if not text:
        return None
    return _to_pedigree(FHIR_DATE_RE.search(text))


def fhir_datetime_to_pedigree(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    return _to_pedigree(FHIR_DATETIME_RE.search(text))


def pedigree_date_to_fhir(text: Optional[str]) -> Optional[str]:
    """Converts an M/D/YYYY date to YYYY-MM-DD. Returns None when the text is not such a date."""
    if not text:
        return None
    match = PEDIGREE_DATE_RE.match(text)
    if match is None:
        return None
    month, day, year = (int(g) for g in match.groups())
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def split_questionnaire_date(text: Optional[str]) -> Optional[DateParts]:
    """
    Parses the free text of a questionnaire date field.
    Accepts YYYY[-MM[-DD]], [[D-]M-]YYYY and ages such as '43 years', '6 m' or '20wks'.
    Returns None when nothing is recognised, the caller keeps the text verbatim.
    """
    if text is None:
        return None
    text = str(text).strip()
    match = QUESTIONNAIRE_YMD_RE.match(text)
    if match:
        return DateParts(
            year=int(match.group(1)),
            month=int(match.group(5)) if match.group(5) else None,
            day=int(match.group(7)) if match.group(7) else None,
        )
    match = QUESTIONNAIRE_DMY_RE.match(text)
    if match:
        return DateParts(
            year=int(match.group(5)),
            month=int(match.group(4)) if match.group(4) else None,
            day=int(match.group(3)) if match.group(3) else None,
        )
    for pattern, unit in AGE_PATTERNS:
        match = pattern.match(text)
        if match:
            return DateParts(age=f"{match.group(1)}{unit}")
    return None
