import pytest

from catalog import QUESTION_DIFFICULTIES, difficulty_from_score, fetch_dropdown_options
from models import DropdownOption


def test_fetch_normalizes_rows() -> None:
    tests, subjects = fetch_dropdown_options(
        fetch_tests=lambda: [{"id": 7, "name": "Admission 2005", "date": "2005-03-01"}],
        fetch_subjects=lambda: [{"id": "s1", "label": "Geometry"}],
    )
    assert tests == [DropdownOption(id="7", value="7", label="Admission 2005")]
    assert subjects == [DropdownOption(id="s1", value="s1", label="Geometry")]


def failing():
    raise RuntimeError("store unreachable")


@pytest.mark.parametrize("broken", ["tests", "subjects"])
def test_any_failure_empties_both_lists(broken: str) -> None:
    rows = lambda: [{"id": 1, "name": "T", "label": "S"}]
    tests, subjects = fetch_dropdown_options(
        fetch_tests=failing if broken == "tests" else rows,
        fetch_subjects=failing if broken == "subjects" else rows,
    )
    assert tests == []
    assert subjects == []


def test_static_difficulties() -> None:
    assert [(o.value, o.label) for o in QUESTION_DIFFICULTIES] == [
        ("easy", "Easy"), ("medium", "Medium"), ("hard", "Hard"), ("expert", "Expert"),
    ]


def test_difficulty_from_score_bands() -> None:
    assert [difficulty_from_score(s) for s in range(1, 11)] == [
        "easy", "easy", "easy",
        "medium", "medium", "medium",
        "hard", "hard",
        "expert", "expert",
    ]
    assert difficulty_from_score(0) == "easy"
    assert difficulty_from_score(42) == "expert"
