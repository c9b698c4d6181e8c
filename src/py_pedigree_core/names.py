# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import re
from typing import List, Optional, Protocol
from pydantic import BaseModel, Field

# Words that are never first names. Chains of these, joined by conjunctions,
# are recognised as one title ("Deputy Secretary of State").
TITLES = frozenset([
    'dr', 'doctor', 'miss', 'misses', 'mr', 'mister', 'mrs', 'ms', 'sir', 'dame',
    'rev', 'madam', 'madame', 'ab', '2ndlt', 'amn', '1stlt', 'a1c', 'capt', 'sra', 'maj',
    'ssgt', 'ltcol', 'tsgt', 'col', 'briggen', '1stsgt', 'majgen', 'smsgt', 'ltgen',
    'cmsgt', 'ccmsgt', 'cmsaf', 'pvt', '2lt', 'pv2', '1lt',
    'pfc', 'cpt', 'spc', 'cpl', 'ltc', 'sgt', 'ssg', 'bg', 'sfc', 'mg',
    'msg', 'ltg', '1sgt', 'sgm', 'csm', 'sma', 'wo1', 'wo2', 'wo3', 'wo4', 'wo5',
    'ens', 'sa', 'ltjg', 'sn', 'lt', 'po3', 'lcdr', 'po2', 'cdr', 'po1', 'cpo',
    'radm(lh)', 'scpo', 'radm(uh)', 'mcpo', 'vadm', 'mcpoc', 'adm', 'mpco-cg',
    'lcpl', 'gysgt', 'bgen', 'msgt', 'mgysgt',
    'gen', 'sgtmaj', 'sgtmajmc', 'wo-1', 'cwo-2', 'cwo-3', 'cwo-4', 'cwo-5',
    'rdml', 'radm', 'mcpon', 'fadm', 'cwo2', 'cwo3', 'cwo4', 'cwo5',
    'rt', 'lord', 'lady', 'duke', 'dutchess', 'master', 'maid', 'uncle', 'auntie', 'aunt',
    'representative', 'senator', 'king', 'queen', 'cardinal', 'secretary', 'state',
    'foreign', 'minister', 'speaker', 'president', 'deputy', 'executive', 'vice',
    'councillor', 'alderman', 'delegate', 'mayor', 'lieutenant', 'governor', 'prefect',
    'prelate', 'premier', 'burgess', 'ambassador', 'envoy', 'attaché',
    "chargé d'affaires", 'provost', 'marquis', 'marquess', 'marquise', 'marchioness',
    'archduke', 'archduchess', 'viscount', 'baron', 'emperor', 'empress', 'tsar',
    'tsarina', 'leader', 'abbess', 'abbot', 'brother', 'sister', 'friar', 'mother',
    'superior', 'reverend', 'bishop', 'archbishop', 'metropolitan', 'presbyter',
    'priest', 'high', 'priestess', 'father', 'patriarch', 'pope', 'catholicos',
    'vicar', 'chaplain', 'canon', 'pastor', 'primate',
    'servant', 'venerable', 'blessed', 'saint', 'member', 'solicitor',
    'mufti', 'grand', 'chancellor', 'barrister', 'bailiff', 'attorney', 'advocate',
    'deacon', 'archdeacon', 'acolyte', 'elder', 'monsignor', 'almoner',
    'prof', 'colonel', 'general', 'commodore', 'air', 'corporal', 'staff', 'mate',
    'chief', 'first', 'sergeant', 'admiral', 'rear', 'brigadier',
    'captain', 'group', 'commander', 'commander-in-chief', 'wing',
    'adjutant', 'director', 'generalissimo', 'resident', 'surgeon', 'officer',
    'academic', 'analytics', 'business', 'credit', 'financial', 'information',
    'security', 'knowledge', 'marketing', 'operating', 'petty', 'risk',
    'strategy', 'technical', 'warrant', 'corporate', 'customs', 'field', 'flag',
    'flying', 'intelligence', 'pilot', 'police', 'political', 'revenue', 'senior',
    'private', 'principal', 'coach', 'nurse', 'nanny', 'docent', 'lama',
    'druid', 'archdruid', 'rabbi', 'rebbe', 'buddha', 'ayatollah', 'imam',
    'bodhisattva', 'mullah', 'mahdi', 'saoshyant', 'tirthankar', 'vardapet',
    'pharaoh', 'sultan', 'sultana', 'maharajah', 'maharani',
    'vizier', 'chieftain', 'comptroller', 'courtier', 'curator', 'doyen', 'edohen',
    'ekegbian', 'elerunwon', 'forester', 'gentiluomo', 'headman', 'intendant',
    'lamido', 'marcher', 'matriarch', 'prior', 'pursuivant', 'rangatira',
    'ranger', 'registrar', 'seigneur', 'sharif', 'shehu', 'sheikh', 'sheriff', 'subaltern',
    'subedar', 'sysselmann', 'timi', 'treasurer', 'verderer', 'warden', 'hereditary',
    'woodman', 'bearer', 'banner', 'swordbearer', 'apprentice', 'journeyman',
    'adept', 'akhoond', 'arhat', 'bwana', 'goodman', 'goodwife', 'bard', 'hajji',
    'baba', 'effendi', 'giani', 'gyani', 'guru', 'siddha', 'pir', 'murshid',
    'attache', 'prime', 'united', 'states', 'national', 'associate', 'assistant',
    'supreme', 'appellate', 'judicial', "queen's", "king's", 'bench', 'right', 'majesty',
    'his', 'her', 'kingdom', 'royal',
])

# could be names, but with a trailing period they are titles
PUNC_TITLES = frozenset(['hon.'])

# chainable surname prefixes, as in "de la Vega"
PREFIXES = frozenset([
    'abu', 'bon', 'bin', 'da', 'dal', 'de', 'del', 'der', 'di', 'dí', 'ibn',
    'la', 'le', 'san', 'st', 'ste', 'van', 'vel', 'von',
])

SUFFIXES = frozenset([
    'esq', 'esquire', 'jr', 'sr', '2', 'i', 'ii', 'iii', 'iv', 'v', 'clu', 'chfc',
    'cfp', 'md', 'phd', 'm.d.', 'ph.d.', '2nd', '3rd', '4th', '5th',
])

CONJUNCTIONS = frozenset(['&', 'and', 'et', 'e', 'of', 'the', 'und', 'y'])

# names, optional (nickname or maiden), more names, optional (maiden)
NO_COMMA_RE = re.compile(r"^([^(]*)(\(([^)]*)\))?([^(]*)(\(([^)]*)\))?$")


class SplitName(BaseModel):
    """
    The parts of a free-text personal name.
    """
    first: List[str] = Field(default_factory=list)
    surname: Optional[str] = None
    maiden: Optional[str] = None
    nickname: Optional[str] = None
    title: Optional[str] = None
    suffix: List[str] = Field(default_factory=list)


class NameSplitter(Protocol):
    def split(self, name: str) -> SplitName:
        ...


class DefaultNameSplitter:
    """
    Heuristic splitter for names such as 'Dr Hans de Vissier Jr',
    'Mary (Rosie) Ridout (Conlan)' or 'de Vissier Jr, Hans'.

    A parenthesised part followed by more name text is a nickname; a trailing
    parenthesised part is the maiden name.
    """

    def split(self, name: str) -> SplitName:
        if "," in name:
            return self._split_with_comma(name)
        return self._split_no_comma(name)

    def _split_no_comma(self, name: str) -> SplitName:
        match = NO_COMMA_RE.match(name)
        if match is None:
            return SplitName(first=[name.strip()])
        result = SplitName()
        names_to_split = match.group(1).strip()
        bracketed = (match.group(3) or "").strip()
        after = (match.group(4) or "").strip()
        if bracketed:
            if after:
                result.nickname = bracketed
            else:
                result.maiden = bracketed
        if after:
            names_to_split = f"{names_to_split} {after}".strip()
        trailing = (match.group(6) or "").strip()
        if trailing:
            result.maiden = trailing

        names = names_to_split.split()
        if len(names) <= 1:
            result.first = names or [name.strip()]
            return result

        title = []
        title_offset = 0
        while title_offset < len(names):
            word = names[title_offset].lower()
            if word in TITLES or word in PUNC_TITLES or word in CONJUNCTIONS:
                title.append(names[title_offset])
                title_offset += 1
            else:
                break
        if title:
            result.title = " ".join(title)

        suffix_index = len(names) - 1
        while suffix_index > title_offset and names[suffix_index].lower() in SUFFIXES:
            result.suffix.insert(0, names[suffix_index])
            suffix_index -= 1

        if suffix_index > title_offset:
            surname = [names[suffix_index]]
            surname_index = suffix_index - 1
            while surname_index >= title_offset and names[surname_index].lower() in PREFIXES:
                surname.insert(0, names[surname_index])
                surname_index -= 1
            result.surname = " ".join(surname)
            result.first = names[title_offset:surname_index + 1]
        return result

    def _split_with_comma(self, name: str) -> SplitName:
        surname_part, _, first_part = name.partition(",")
        surnames = surname_part.split()
        result = SplitName()
        suffix_index = len(surnames) - 1
        while suffix_index > 0 and surnames[suffix_index].lower() in SUFFIXES:
            result.suffix.insert(0, surnames[suffix_index])
            suffix_index -= 1
        if surnames:
            result.surname = " ".join(surnames[:suffix_index + 1])
        result.first = first_part.split(",")[0].split()
        return result
