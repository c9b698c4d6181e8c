# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import pytest

from py_pedigree_core.names import DefaultNameSplitter, SplitName


@pytest.fixture
def splitter():
    return DefaultNameSplitter()


def test_title_prefix_and_suffix(splitter):
    assert splitter.split("Dr Hans de Vissier Jr") == SplitName(
        first=["Hans"], surname="de Vissier", title="Dr", suffix=["Jr"],
    )


def test_nickname_and_maiden_name(splitter):
    name = splitter.split("Mary (Rosie) Ridout (Conlan)")
    assert name.first == ["Mary"]
    assert name.surname == "Ridout"
    assert name.nickname == "Rosie"
    assert name.maiden == "Conlan"


def test_trailing_brackets_are_the_maiden_name(splitter):
    name = splitter.split("Mary Doe (Smith)")
    assert (name.first, name.surname, name.maiden, name.nickname) == (["Mary"], "Doe", "Smith", None)


def test_surname_first_with_comma(splitter):
    assert splitter.split("de Vissier Jr, Hans") == SplitName(first=["Hans"], surname="de Vissier", suffix=["Jr"])


def test_several_given_names(splitter):
    name = splitter.split("Anna Maria Smith")
    assert name.first == ["Anna", "Maria"]
    assert name.surname == "Smith"


def test_single_word_is_a_first_name(splitter):
    assert splitter.split("Cher") == SplitName(first=["Cher"])
