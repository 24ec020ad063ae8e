"""
UI Helper Functions

Contains utility functions used across UI components.
"""

from functools import partial

import streamlit as st

from models import ImageFile, QuestionDraft
from session import QuestionSession
from llm_extraction import get_model_id, convert_image_to_question
from cost_tracking import track_api_call


def get_selected_model_id() -> str:
    """Get the currently selected extraction model ID."""
    return get_model_id(st.session_state.selected_model)


def get_extract_fn():
    """Extraction callable bound to the selected model, safe to run in workers."""
    return partial(convert_image_to_question, model_id=get_selected_model_id())


def record_usages(step_name: str, usages: list):
    """Record (model_id, usage) pairs collected off the script thread."""
    for model_id, usage in usages:
        track_api_call(step_name, model_id, usage)


def image_caption(session: QuestionSession, image: ImageFile) -> str:
    if session.is_saved(image.name):
        return f"✅ {image.name}"
    if not session.is_ready(image.name):
        return f"⏳ {image.name}"
    if session.conversions[image.name].is_empty():
        return f"⚠️ {image.name}"
    return image.name


def get_form_draft() -> QuestionDraft:
    """Current form widget values as a QuestionDraft."""
    return QuestionDraft(
        question=st.session_state.get("form_question", "") or "",
        options=st.session_state.get("form_options", "") or "",
        solution_image=st.session_state.get("form_solution_image") or None,
        test_name_id=st.session_state.get("form_test_name_id") or "",
        question_subject_id=st.session_state.get("form_subject_id") or "",
        question_difficulty=st.session_state.get("form_difficulty") or "",
    )
