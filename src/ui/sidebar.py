"""
UI Sidebar Module

Contains model selection and session status display.
"""

import streamlit as st

from state_management import get_question_session, save_settings, clear_session_data, load_catalog
from llm_extraction import get_model_options, get_log_file_path
from cost_tracking import get_usage_ledger, format_cost, format_tokens


def render_sidebar():
    """Render sidebar with settings and status."""
    st.sidebar.title("Question Builder")
    st.sidebar.caption("Image → question database")

    st.sidebar.markdown("---")

    model_options = get_model_options()
    current = st.session_state.selected_model
    selected = st.sidebar.selectbox(
        "Extraction model",
        model_options,
        index=model_options.index(current) if current in model_options else 0,
        help="Used for new images, regeneration and difficulty suggestions"
    )
    if selected != current:
        st.session_state.selected_model = selected
        save_settings()

    st.sidebar.markdown("---")

    # Status summary
    st.sidebar.subheader("Status")
    summary = get_question_session().summary()

    if summary["images"] > 0:
        st.sidebar.success(f"Images: {summary['images']}")
    else:
        st.sidebar.info("Images: None loaded")

    if summary["pending"] > 0:
        st.sidebar.warning(f"Extracting: {summary['pending']}")
    if summary["extracted"] > 0:
        st.sidebar.success(f"Extracted: {summary['extracted']}")

    if summary["saved"] > 0:
        st.sidebar.success(f"Saved: {summary['saved']}")

    col1, col2 = st.sidebar.columns(2)
    with col1:
        if st.button("Clear session", key="clear_session", type="secondary",
                     help="Forget all images, extractions and saved badges"):
            clear_session_data()
            st.rerun()
    with col2:
        if st.button("Reload lists", key="reload_catalog", type="secondary",
                     help="Fetch test names and subjects again"):
            load_catalog(force=True)
            st.rerun()

    # API Usage summary
    ledger = get_usage_ledger()
    if ledger.steps:
        st.sidebar.markdown("---")
        st.sidebar.subheader("API Usage")
        st.sidebar.metric("Session Cost", format_cost(ledger.total_cost))
        st.sidebar.caption(
            f"{format_tokens(ledger.total_input_tokens)} in / "
            f"{format_tokens(ledger.total_output_tokens)} out"
        )
        for step_name, step in ledger.steps.items():
            st.sidebar.caption(f"{step_name}: {step.calls} call(s), {format_cost(step.cost)}")

    log_file = get_log_file_path()
    if log_file:
        st.sidebar.caption(f"Log: `{log_file}`")
