# storage.py

import os
import uuid
from urllib.parse import urlparse

from dotenv import load_dotenv
from supabase import create_client

from models import SavedQuestion
from llm_extraction import get_logger

QUESTIONS_TABLE = "questions"
TEST_NAMES_TABLE = "test_names"
QUESTION_SUBJECTS_TABLE = "question_subjects"
UPLOAD_BUCKET = "general"
DELETE_BUCKET = "images"
DEFAULT_UPLOAD_FOLDER = "question-images"

_supabase = None


class StorageError(Exception):
    """A backend store operation failed."""


class UploadError(StorageError):
    """An object upload failed. Message always starts with 'Upload failed'."""


def get_supabase_client():
    """
    Create the Supabase client on first use.

    Missing settings fall back to placeholders, so a misconfigured store
    fails inside the first operation rather than at startup.
    """
    global _supabase
    if _supabase is None:
        load_dotenv()
        url = os.getenv("SUPABASE_URL") or "your-supabase-url"
        key = os.getenv("SUPABASE_ANON_KEY") or "your-supabase-anon-key"
        _supabase = create_client(url, key)
    return _supabase


def get_upload_folder() -> str:
    return os.getenv("UPLOAD_FOLDER") or DEFAULT_UPLOAD_FOLDER


def _error_message(e: Exception) -> str:
    return getattr(e, "message", None) or str(e)


def make_storage_path(filename: str, folder: str) -> str:
    """Random object name under folder/, keeping the original extension."""
    name = str(uuid.uuid4())
    if "." in filename:
        name = f"{name}.{filename.rsplit('.', 1)[-1]}"
    return f"{folder}/{name}"


def upload_image(file_bytes: bytes, filename: str, folder: str = None,
                 content_type: str = None, client=None) -> str:
    """
    Upload image bytes to the storage bucket and return their public URL.

    Raises:
        UploadError: on any store error
    """
    path = make_storage_path(filename, folder or get_upload_folder())
    logger = get_logger()

    try:
        client = client or get_supabase_client()
        file_options = {"cache-control": "3600", "upsert": "false"}
        if content_type:
            file_options["content-type"] = content_type
        client.storage.from_(UPLOAD_BUCKET).upload(path, file_bytes, file_options)
        public_url = client.storage.from_(UPLOAD_BUCKET).get_public_url(path)
    except Exception as e:
        logger.error(f"Error uploading image {filename}: {type(e).__name__}: {e}")
        raise UploadError(f"Upload failed: {_error_message(e)}") from e

    logger.info(f"Uploaded {filename} to {UPLOAD_BUCKET}/{path}")
    return public_url


def save_question(question: SavedQuestion, client=None) -> list:
    """
    Insert one row into the questions table.

    Raises:
        StorageError: with the store's message on any error
    """
    try:
        client = client or get_supabase_client()
        result = client.table(QUESTIONS_TABLE).insert([question.to_row()]).execute()
    except Exception as e:
        raise StorageError(_error_message(e)) from e

    get_logger().info(f"Saved question with image {question.image}")
    return result.data


def _select_ordered(table: str, columns: str, order_by: str, client=None) -> list[dict]:
    try:
        client = client or get_supabase_client()
        result = client.table(table).select(columns).order(order_by, desc=False).execute()
    except Exception as e:
        raise StorageError(_error_message(e)) from e
    return result.data or []


def get_test_names(client=None) -> list[dict]:
    """Rows of {id, name, date} ordered by name."""
    return _select_ordered(TEST_NAMES_TABLE, "id, name, date", "name", client=client)


def get_question_subjects(client=None) -> list[dict]:
    """Rows of {id, label} ordered by label."""
    return _select_ordered(QUESTION_SUBJECTS_TABLE, "id, label", "label", client=client)


def storage_path_from_url(image_url: str) -> str:
    """folder/filename taken from the tail of a public object URL."""
    parts = urlparse(image_url).path.split("/")
    return "/".join(parts[-2:])


def delete_image(image_url: str, client=None):
    """
    Remove a previously uploaded object, given its public URL.

    Raises:
        StorageError: on any store error
    """
    path = storage_path_from_url(image_url)
    try:
        client = client or get_supabase_client()
        client.storage.from_(DELETE_BUCKET).remove([path])
    except Exception as e:
        get_logger().error(f"Error deleting image {path}: {e}")
        raise StorageError(f"Delete failed: {_error_message(e)}") from e
