"""
UI Components Module

Contains the Streamlit rendering functions for the two panels:
the image browser and the question form.
Helper functions and sidebar are in the ui/ package.
"""

import streamlit as st

from models import SelectedImage
from image_intake import IMAGE_EXTENSIONS
from question_form import (
    options_to_text,
    regenerate_conversion,
    split_options,
    submit_question,
    suggest_difficulty_value,
)
from catalog import QUESTION_DIFFICULTIES
from state_management import (
    get_question_session, get_extraction_executor, load_catalog, seed_form
)
from cost_tracking import track_api_call

from ui.helpers import (
    get_selected_model_id,
    get_extract_fn,
    record_usages,
    image_caption,
    get_form_draft,
)

GRID_COLUMNS = 3

# Seconds between image browser refreshes while extractions are running
EXTRACTION_POLL_SECONDS = 1.0


# =============================================================================
# Image Browser
# =============================================================================

def render_image_browser():
    """
    Render the drop zone, the image grid and the selected image preview.

    While extractions run, only this panel refreshes on a timer; the form
    stays usable and each image becomes selectable as its own result lands.
    """
    session = get_question_session()
    polling = bool(session.pending_names)
    browser = st.fragment(
        _render_image_browser_body,
        run_every=EXTRACTION_POLL_SECONDS if polling else None
    )
    browser(polling)


def _render_image_browser_body(polling: bool):
    session = get_question_session()

    uploads = st.file_uploader(
        "Drag & drop images here, or click to select files",
        type=IMAGE_EXTENSIONS,
        accept_multiple_files=True,
        # New key per generation so a cleared session starts with an empty uploader
        key=f"image_uploader_{session.generation}",
        help="Supports: JPEG, PNG, GIF, BMP, WebP"
    )

    new_images = session.add_uploads(uploads)
    if new_images:
        session.start_extractions(new_images, get_extraction_executor(), get_extract_fn())
        # Full rerun so the browser is rebuilt with polling on
        st.rerun()

    session.collect_finished()
    record_usages("extract_question", session.take_usages())

    pending = session.pending_names
    if pending:
        st.progress(
            session.extraction_progress(),
            text=f"Extracting {len(pending)} image(s)..."
        )
    elif polling:
        # Last result arrived: refresh the whole page once and stop polling
        st.rerun()

    if not session.images:
        return

    st.markdown(f"**Select an image** ({len(session.images)} images loaded)")

    columns = st.columns(GRID_COLUMNS)
    for idx, image in enumerate(session.images):
        with columns[idx % GRID_COLUMNS]:
            st.image(image.preview or image.data, caption=image_caption(session, image))
            ready = session.is_ready(image.name)
            is_selected = session.is_selected(image)
            clicked = st.button(
                "Selected" if is_selected else "Select",
                key=f"select_{idx}",
                disabled=not ready,
                type="primary" if is_selected else "secondary",
                help=None if ready else "Waiting for extraction"
            )
            if clicked and session.select(image):
                st.session_state.last_submit_message = None
                st.rerun()

    if session.selected:
        st.markdown("---")
        st.subheader("Selected Image Preview")
        st.image(session.selected.image.data, caption=session.selected.image.name)


# =============================================================================
# Question Form
# =============================================================================

def regenerate_question(selected: SelectedImage):
    """Re-run extraction on demand. Failures are shown to the user."""
    with st.spinner("Generating..."):
        output, error = regenerate_conversion(
            selected.image,
            model_id=get_selected_model_id(),
            on_usage=lambda model_id, usage: track_api_call("regenerate_question", model_id, usage)
        )
    if error:
        st.error(error)
        return

    st.session_state.form_question = output.question
    st.session_state.form_options = options_to_text(output.options)
    st.session_state.form_answer = None


def suggest_difficulty(selected: SelectedImage):
    """Grade the selected image and pre-select the difficulty dropdown."""
    with st.spinner("Grading difficulty..."):
        difficulty, score, error = suggest_difficulty_value(
            selected.image,
            model_id=get_selected_model_id(),
            on_usage=lambda model_id, usage: track_api_call("grade_difficulty", model_id, usage)
        )
    if error:
        st.error(error)
        return

    st.session_state.form_difficulty = difficulty
    st.toast(f"Suggested difficulty: {score}/10")


def _dropdown(label: str, options: list, key: str, placeholder: str, disabled: bool = False):
    labels = {o.value: o.label for o in options}
    if st.session_state.get(key) not in labels:
        st.session_state[key] = None
    return st.selectbox(
        label,
        options=list(labels),
        format_func=lambda value: labels[value],
        index=None,
        placeholder=placeholder,
        key=key,
        disabled=disabled
    )


def render_question_form():
    """Render the editable question form for the active selection."""
    session = get_question_session()
    selected = session.selected

    if selected is None:
        st.info("**No image selected.** Please select an image from the left panel to create a question.")
        return

    seed_form(selected)
    catalog = load_catalog()
    loading = st.session_state.get("catalog_loading", False)

    # Question field
    col1, col2 = st.columns([3, 1])
    with col1:
        st.markdown("**Question**")
    with col2:
        if st.button("Generate from Image", key="regenerate", use_container_width=True):
            regenerate_question(selected)

    st.text_area(
        "Question",
        key="form_question",
        height=150,
        label_visibility="collapsed",
        placeholder="Enter the question or click 'Generate from Image' to auto-generate"
    )
    if st.session_state.form_question:
        with st.container(border=True):
            st.caption("Preview:")
            st.markdown(st.session_state.form_question, unsafe_allow_html=True)

    # Options field
    st.text_area(
        "Options (one per line)",
        key="form_options",
        height=120,
        placeholder="Option 1\nOption 2\nOption 3\nOption 4"
    )
    options = split_options(st.session_state.form_options)

    # Answer field
    answer = st.session_state.get("form_answer")
    if answer is not None and not 0 <= answer < len(options):
        st.session_state.form_answer = None
    st.selectbox(
        "Answer",
        options=list(range(len(options))),
        format_func=lambda i: options[i],
        index=None,
        placeholder="Select answer",
        key="form_answer"
    )

    st.text_input(
        "Solution Image (optional)",
        key="form_solution_image",
        placeholder="Enter solution image path or URL"
    )

    if st.button("Suggest difficulty", key="suggest_difficulty", type="secondary"):
        suggest_difficulty(selected)

    # Dropdown fields
    test_col, subject_col, difficulty_col = st.columns(3)
    with test_col:
        _dropdown(
            "Test Name", catalog["test_names"], "form_test_name_id",
            "Loading test names..." if loading else "Select test name", disabled=loading
        )
    with subject_col:
        _dropdown(
            "Question Subject", catalog["subjects"], "form_subject_id",
            "Loading subjects..." if loading else "Select subject", disabled=loading
        )
    with difficulty_col:
        _dropdown("Question Difficulty", QUESTION_DIFFICULTIES, "form_difficulty", "Select difficulty")

    # Submit
    if st.button("Save Question", key="save_question", type="primary",
                 disabled=st.session_state.is_submitting):
        st.session_state.is_submitting = True
        try:
            with st.spinner("Uploading image and saving question..."):
                result = submit_question(
                    selected.image, get_form_draft(), st.session_state.get("form_answer")
                )
        finally:
            st.session_state.is_submitting = False

        if result.ok:
            session.mark_saved(selected.image.name)
        st.session_state.last_submit_message = result.to_dict()

    message = st.session_state.get("last_submit_message")
    if message:
        if message["ok"]:
            st.success(f"Question saved for {selected.image.name}")
        elif message["errors"] and message["message"] == message["errors"][0]:
            # Validation problems are listed individually
            for error in message["errors"]:
                st.error(error)
        else:
            st.error(message["message"])
