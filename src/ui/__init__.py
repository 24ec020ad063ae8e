"""
UI Package

Modular UI components for the Question Builder.

This package provides helper functions and sidebar rendering.
Panel rendering functions remain in ui_components.py to avoid circular imports.

Usage:
    from ui import render_sidebar
    from ui.helpers import get_selected_model_id, get_form_draft, ...
"""

from ui.helpers import (
    get_selected_model_id,
    get_extract_fn,
    record_usages,
    image_caption,
    get_form_draft,
)

from ui.sidebar import render_sidebar

__all__ = [
    # Helpers
    'get_selected_model_id',
    'get_extract_fn',
    'record_usages',
    'image_caption',
    'get_form_draft',
    # Sidebar
    'render_sidebar',
]
