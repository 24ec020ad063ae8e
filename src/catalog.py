"""
Catalog Module

Dropdown sources for the question form: test names and subjects from the
store, and the static difficulty list.
"""

from concurrent.futures import ThreadPoolExecutor

from models import DropdownOption
from storage import get_test_names, get_question_subjects
from llm_extraction import get_logger

# Static dropdown options for fields that don't come from the database
QUESTION_DIFFICULTIES = [
    DropdownOption(id="easy", value="easy", label="Easy"),
    DropdownOption(id="medium", value="medium", label="Medium"),
    DropdownOption(id="hard", value="hard", label="Hard"),
    DropdownOption(id="expert", value="expert", label="Expert"),
]

# Upper bound of each 1-10 score band
DIFFICULTY_SCORE_BANDS = [
    (3, "easy"),
    (6, "medium"),
    (8, "hard"),
    (10, "expert"),
]


def difficulty_from_score(score: int) -> str:
    """Map a 1-10 difficulty grade onto a difficulty value."""
    score = max(1, min(10, int(score)))
    for upper, value in DIFFICULTY_SCORE_BANDS:
        if score <= upper:
            return value
    return DIFFICULTY_SCORE_BANDS[-1][1]


def to_dropdown_options(rows: list[dict], label_field: str) -> list[DropdownOption]:
    return [
        DropdownOption(id=str(row["id"]), value=str(row["id"]), label=row[label_field])
        for row in rows
    ]


def fetch_dropdown_options(
    fetch_tests: callable = get_test_names,
    fetch_subjects: callable = get_question_subjects
) -> tuple[list[DropdownOption], list[DropdownOption]]:
    """
    Fetch test names and subjects concurrently.

    Either failure empties both lists; the form then shows no options
    instead of an error.

    Returns:
        Tuple of (test_name_options, subject_options)
    """
    try:
        with ThreadPoolExecutor(max_workers=2) as executor:
            tests_future = executor.submit(fetch_tests)
            subjects_future = executor.submit(fetch_subjects)
            test_rows = tests_future.result()
            subject_rows = subjects_future.result()

        return (
            to_dropdown_options(test_rows, "name"),
            to_dropdown_options(subject_rows, "label"),
        )
    except Exception as e:
        get_logger().error(f"Failed to fetch dropdown options: {type(e).__name__}: {e}")
        return [], []
