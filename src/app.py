#!/usr/bin/env python3
"""
Question Builder

A Streamlit tool for building a quiz-question database from images of
printed exam questions.

Usage:
    streamlit run src/app.py

Features:
    - Drag & drop question images; each is extracted in the background
    - Edit the extracted HTML/LaTeX question and options with live preview
    - Pick the answer, test, subject and difficulty
    - Upload the image and save the question to Supabase
"""

import streamlit as st

from state_management import init_session_state
from ui_components import render_image_browser, render_question_form
from ui.sidebar import render_sidebar

# Page config
st.set_page_config(
    page_title="Question Builder",
    page_icon="📝",
    layout="wide",
    initial_sidebar_state="expanded"
)


def main():
    init_session_state()
    render_sidebar()

    st.title("Question Generation")

    session = st.session_state.question_session
    left_col, right_col = st.columns(2, gap="large")

    with left_col:
        st.header("Image Browser")
        st.caption("Select an image to create a question")
        render_image_browser()

    with right_col:
        st.header("Question Form")
        if session.selected:
            st.caption(f"Creating question for: {session.selected.image.name}")
        else:
            st.caption("Select an image to start")
        render_question_form()


main()
