"""
Question Form Module

Validation, submission and user-requested regeneration for the question
form, independent of Streamlit.
Rendering lives in ui_components.py.
"""

from datetime import datetime, timezone
from typing import Optional

from models import (
    ConversionOutput, ImageFile, QuestionDraft, SavedOption, SavedQuestion, SubmitResult
)
from storage import upload_image, save_question
from catalog import difficulty_from_score
from llm_extraction import ExtractionError, convert_image_to_question, grade_difficulty, get_logger

UPLOAD_FAILED_MESSAGE = "Failed to upload image. Please check your file and try again."
SAVE_FAILED_MESSAGE = "Failed to save question. Please check your Supabase configuration."
NO_IMAGE_MESSAGE = "Please select an image first"
REGENERATE_FAILED_MESSAGE = "Failed to generate question from image"
DIFFICULTY_FAILED_MESSAGE = "Failed to grade question difficulty"


def options_to_text(options) -> str:
    """Extracted option list -> newline-delimited text for the options field."""
    return "\n".join(options)


def split_options(text: str) -> list[str]:
    """Options text -> option list. Blank lines are dropped."""
    return [line.rstrip() for line in (text or "").split("\n") if line.strip()]


def draft_from_conversion(output: ConversionOutput) -> QuestionDraft:
    return QuestionDraft(question=output.question, options=options_to_text(output.options))


def validate_submission(draft: QuestionDraft, selected_answer: Optional[int]) -> list[str]:
    """Return every problem with the draft; empty means it may be submitted."""
    errors = []
    options = split_options(draft.options)

    if not draft.question.strip():
        errors.append("Question is required")
    if len(options) < 2:
        errors.append("At least 2 options are required")
    if selected_answer is None:
        errors.append("Please select an answer")
    elif not 0 <= selected_answer < len(options):
        errors.append("Selected answer is not one of the options")
    if not draft.test_name_id:
        errors.append("Test name is required")
    if not draft.question_subject_id:
        errors.append("Question subject is required")
    if not draft.question_difficulty:
        errors.append("Question difficulty is required")

    return errors


def build_saved_question(draft: QuestionDraft, selected_answer: int, image_url: str,
                         now: datetime = None) -> SavedQuestion:
    """Split options, flag the answer at selected_answer and stamp the time."""
    now = now or datetime.now(timezone.utc)
    return SavedQuestion(
        question=draft.question,
        options=[
            SavedOption(value=option, correct=i == selected_answer)
            for i, option in enumerate(split_options(draft.options))
        ],
        image=image_url,
        solution_image=draft.solution_image or None,
        test_name_id=draft.test_name_id,
        question_subject_id=draft.question_subject_id,
        created_at=now.isoformat(),
    )


def submit_question(
    image: Optional[ImageFile],
    draft: QuestionDraft,
    selected_answer: Optional[int],
    upload: callable = upload_image,
    save: callable = save_question,
    now: datetime = None
) -> SubmitResult:
    """
    Validate, upload the source image, then insert the question row.

    Nothing touches the network unless validation passes. An upload failure
    stops before the insert. An insert failure leaves the uploaded object
    in place.
    """
    logger = get_logger()

    if image is None:
        return SubmitResult(ok=False, message=NO_IMAGE_MESSAGE, errors=[NO_IMAGE_MESSAGE])

    errors = validate_submission(draft, selected_answer)
    if errors:
        return SubmitResult(ok=False, message=errors[0], errors=errors)

    try:
        image_url = upload(image.data, image.name, content_type=image.mime_type)
    except Exception as e:
        logger.error(f"Save error for {image.name}: {e}")
        return SubmitResult(ok=False, message=UPLOAD_FAILED_MESSAGE, errors=[str(e)])

    saved = build_saved_question(draft, selected_answer, image_url, now=now)

    try:
        row = save(saved)
    except Exception as e:
        logger.error(f"Save error for {image.name}: {e}")
        logger.warning(f"Uploaded image left without a question row: {image_url}")
        return SubmitResult(ok=False, message=SAVE_FAILED_MESSAGE, errors=[str(e)])

    logger.info(f"Question saved for {image.name}")
    return SubmitResult(ok=True, message="Question saved", row=row)


def regenerate_conversion(image: ImageFile, extract: callable = convert_image_to_question,
                          **extract_kwargs) -> tuple[Optional[ConversionOutput], Optional[str]]:
    """
    Re-run extraction for a user request.

    Unlike the background pass, a failure is reported back instead of being
    replaced by the empty output.

    Returns:
        Tuple of (ConversionOutput or None, error message or None)
    """
    try:
        return extract(image.data, image.mime_type, **extract_kwargs), None
    except ExtractionError as e:
        get_logger().error(f"Regenerate failed for {image.name}: {e}")
        return None, REGENERATE_FAILED_MESSAGE


def suggest_difficulty_value(image: ImageFile, grade: callable = grade_difficulty,
                             **grade_kwargs) -> tuple[Optional[str], Optional[int], Optional[str]]:
    """
    Grade the image and map the score onto a difficulty value.

    Returns:
        Tuple of (difficulty value or None, score or None, error message or None)
    """
    try:
        score = grade(image.data, image.mime_type, **grade_kwargs)
    except ExtractionError as e:
        get_logger().error(f"Difficulty grading failed for {image.name}: {e}")
        return None, None, DIFFICULTY_FAILED_MESSAGE
    return difficulty_from_score(score), score, None
