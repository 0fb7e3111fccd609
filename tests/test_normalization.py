import pytest

from consolidation.utils.normalization import (
    normalize_branch_name,
    normalize_job_name,
    normalize_person_name,
    strip_qualifier_suffixes,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Smith Attic - REVISED", "Smith Attic"),
        ("Smith Attic - revised", "Smith Attic"),
        ("Jones Roof-SM", "Jones Roof"),
        ("Lee Crawlspace - CLI - REVISED", "Lee Crawlspace - CLI"),
        ("  Smith   Attic  ", "Smith Attic"),
        ("Casa Grande", "Casa Grande"),
        ("Smith - Carlsbad", "Smith - Carlsbad"),
    ],
)
def test_normalize_job_name_strips_known_qualifiers(raw: str, expected: str) -> None:
    assert normalize_job_name(raw) == expected


def test_normalize_job_name_is_total() -> None:
    assert normalize_job_name(None) == ""
    assert normalize_job_name("") == ""
    assert normalize_job_name(" - REVISED") == ""


def test_strip_qualifier_suffixes_uses_given_tokens() -> None:
    assert strip_qualifier_suffixes("Patel Attic - PHX", ["PHX"]) == "Patel Attic"
    assert strip_qualifier_suffixes("Patel Attic - PHX", []) == "Patel Attic - PHX"


def test_normalize_branch_name_capitalizes_words() -> None:
    assert normalize_branch_name("  san   DIEGO ") == "San Diego"
    assert normalize_branch_name("Los angeles") == normalize_branch_name("LOS ANGELES")
    assert normalize_branch_name(None) == ""


def test_normalize_person_name_is_aggressive() -> None:
    assert normalize_person_name("  Eben  W. ") == "eben w"
    assert normalize_person_name("O'Brien, Pat") == "obrien pat"
    assert normalize_person_name("   ") == ""
