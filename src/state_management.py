"""
State Management Module

Contains session state management and settings persistence.
"""

import os
import json
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor

import streamlit as st

from models import SelectedImage
from session import QuestionSession
from catalog import fetch_dropdown_options
from question_form import options_to_text
from llm_extraction import DEFAULT_MODEL_NAME, get_logger
from cost_tracking import get_usage_ledger, reset_cost_tracker

# =============================================================================
# Path Constants
# =============================================================================

BASE_OUTPUT_DIR = "output"

DEFAULT_EXTRACTION_WORKERS = 4

FORM_KEYS = [
    "form_question",
    "form_options",
    "form_answer",
    "form_solution_image",
    "form_test_name_id",
    "form_subject_id",
    "form_difficulty",
]


def get_settings_file() -> str:
    return f"{BASE_OUTPUT_DIR}/settings.json"


# =============================================================================
# Shared Resources
# =============================================================================

@st.cache_resource
def get_extraction_executor() -> ThreadPoolExecutor:
    """Worker pool for background extraction, shared across reruns."""
    max_workers = int(os.environ.get("EXTRACTION_WORKERS") or DEFAULT_EXTRACTION_WORKERS)
    return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="extract")


# =============================================================================
# Session State Initialization
# =============================================================================

def init_session_state():
    """Initialize session state variables and load saved settings."""
    is_fresh_init = "initialized" not in st.session_state

    if "question_session" not in st.session_state:
        st.session_state.question_session = QuestionSession()
    if "selected_model" not in st.session_state:
        st.session_state.selected_model = DEFAULT_MODEL_NAME
    if "form_seeded_for" not in st.session_state:
        st.session_state.form_seeded_for = None
    if "is_submitting" not in st.session_state:
        st.session_state.is_submitting = False
    if "last_submit_message" not in st.session_state:
        st.session_state.last_submit_message = None

    get_usage_ledger()

    if is_fresh_init:
        st.session_state.initialized = True
        get_logger(BASE_OUTPUT_DIR)
        load_settings()


def get_question_session() -> QuestionSession:
    return st.session_state.question_session


def load_catalog(force: bool = False):
    """Fetch test names and subjects once per session."""
    if "catalog" in st.session_state and not force:
        return st.session_state.catalog

    st.session_state.catalog_loading = True
    try:
        test_names, subjects = fetch_dropdown_options()
        st.session_state.catalog = {"test_names": test_names, "subjects": subjects}
    finally:
        st.session_state.catalog_loading = False
    return st.session_state.catalog


def seed_form(selected: SelectedImage):
    """Fill the editable form fields from a newly selected image."""
    key = (selected.image.name, selected.image.upload_id)
    if st.session_state.form_seeded_for == key:
        return

    output = selected.conversion_output
    st.session_state.form_question = output.question
    st.session_state.form_options = options_to_text(output.options)
    st.session_state.form_answer = None
    st.session_state.form_seeded_for = key


def clear_session_data():
    """Clear all images, extractions and form fields."""
    get_question_session().reset()
    for key in FORM_KEYS:
        st.session_state.pop(key, None)
    st.session_state.form_seeded_for = None
    st.session_state.last_submit_message = None
    reset_cost_tracker()
    get_logger().info("Session cleared")


# =============================================================================
# Settings Persistence
# =============================================================================

def load_settings():
    """Load user settings from file."""
    settings_file = get_settings_file()
    if not os.path.exists(settings_file):
        return
    try:
        with open(settings_file) as f:
            settings = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        get_logger().warning(f"Ignoring unreadable settings file: {e}")
        return

    if "selected_model" in settings:
        st.session_state.selected_model = settings["selected_model"]


def save_settings():
    """Save user settings to file."""
    os.makedirs(BASE_OUTPUT_DIR, exist_ok=True)
    settings = {
        "selected_model": st.session_state.selected_model,
        "last_saved": datetime.now().isoformat()
    }
    with open(get_settings_file(), "w") as f:
        json.dump(settings, f, indent=2)
