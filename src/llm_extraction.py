"""
LLM Extraction Module

Contains the image-to-question extraction client and prompt management.
Prompts are loaded from config/prompts.yaml for easy editing.
"""

import os
import re
import json
import base64
import logging
from pathlib import Path
from typing import Optional

import yaml

from models import ConversionOutput

# =============================================================================
# Logging Setup
# =============================================================================

_logger = None
_log_file_path = None


def get_logger(output_dir: Optional[str] = None) -> logging.Logger:
    """
    Get or create the application logger.

    Args:
        output_dir: Directory to save log file. If provided and file handler
                   doesn't exist yet, creates a new log file there.

    Returns:
        Logger instance
    """
    global _logger, _log_file_path

    if _logger is None:
        _logger = logging.getLogger("question_builder")
        _logger.setLevel(logging.DEBUG)
        _logger.handlers = []

        # Console handler - only warnings and above
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        _logger.addHandler(console_handler)

    if output_dir and _log_file_path is None:
        log_dir = Path(output_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        _log_file_path = log_dir / "question_builder.log"

        file_handler = logging.FileHandler(_log_file_path, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        _logger.addHandler(file_handler)

        _logger.info("=" * 60)
        _logger.info("Question builder session started")

    return _logger


def get_log_file_path() -> Optional[Path]:
    """Get the current log file path, if logging to file is enabled."""
    return _log_file_path


def reset_logger():
    """Reset the logger (useful for testing or changing output directories)."""
    global _logger, _log_file_path
    if _logger:
        for handler in _logger.handlers:
            handler.close()
        _logger.handlers = []
    _logger = None
    _log_file_path = None


# =============================================================================
# Prompt Loading
# =============================================================================

_cached_prompts = None


def get_prompts_path() -> Path:
    """Get path to prompts.yaml file."""
    return Path(__file__).parent / "config" / "prompts.yaml"


def load_prompts() -> dict:
    """Load prompts from YAML file. Caches after first load."""
    global _cached_prompts

    if _cached_prompts is not None:
        return _cached_prompts

    prompts_path = get_prompts_path()
    if not prompts_path.exists():
        raise FileNotFoundError(f"Prompts file not found: {prompts_path}")

    with open(prompts_path) as f:
        _cached_prompts = yaml.safe_load(f)

    return _cached_prompts


def get_prompt(name: str, **kwargs) -> str:
    """
    Get a formatted prompt by name.

    Args:
        name: Prompt name (e.g., 'extract_question', 'grade_difficulty')
        **kwargs: Variables to substitute into the prompt template

    Returns:
        Formatted prompt string
    """
    prompts = load_prompts()

    if name not in prompts:
        raise ValueError(f"Unknown prompt: {name}. Available: {list(prompts.keys())}")

    try:
        return prompts[name]["prompt"].format(**kwargs)
    except KeyError as e:
        raise ValueError(f"Missing variable for prompt '{name}': {e}")


# =============================================================================
# Clients & Model Management
# =============================================================================

# Vision-capable models offered in the sidebar (display name -> model id)
AVAILABLE_MODELS = {
    "GPT-4.1 mini": "gpt-4.1-mini",
    "GPT-4.1": "gpt-4.1",
    "GPT-4o": "gpt-4o",
    "Claude Sonnet 4": "claude-sonnet-4-20250514",
    "Claude Haiku 4.5": "claude-haiku-4-5-20251001",
}
DEFAULT_MODEL_ID = "gpt-4.1-mini"
DEFAULT_MODEL_NAME = "GPT-4.1 mini"

ANTHROPIC_MAX_TOKENS = 4096


class ExtractionError(Exception):
    """Raised when an image could not be turned into a question."""


def get_default_model_id() -> str:
    return os.environ.get("EXTRACTION_MODEL", DEFAULT_MODEL_ID)


def get_model_options() -> list[str]:
    """Get list of model display names for dropdown."""
    return list(AVAILABLE_MODELS.keys())


def get_model_id(display_name: str) -> str:
    """Get model ID from display name."""
    return AVAILABLE_MODELS.get(display_name, get_default_model_id())


def is_anthropic_model(model_id: str) -> bool:
    return model_id.startswith("claude")


def get_openai_client():
    """Get OpenAI client, loading API key from .env if needed."""
    from dotenv import load_dotenv
    load_dotenv()

    from openai import OpenAI
    # A placeholder key fails on the first request, not here
    return OpenAI(api_key=os.environ.get("OPENAI_API_KEY") or "your-openai-api-key")


def get_anthropic_client():
    """Get Anthropic client, loading API key from .env if needed."""
    from dotenv import load_dotenv
    load_dotenv()

    import anthropic
    return anthropic.Anthropic(api_key=os.environ.get("ANTHROPIC_API_KEY") or "your-anthropic-api-key")


def get_client_for_model(model_id: str):
    if is_anthropic_model(model_id):
        return get_anthropic_client()
    return get_openai_client()


# =============================================================================
# Completion Requests
# =============================================================================

def encode_image_data_uri(image_bytes: bytes, mime_type: str) -> str:
    """Base64-encode image bytes as a data URI."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def request_openai_completion(client, model_id: str, prompt: str, image_data_uri: str) -> tuple[str, dict]:
    """
    Send one prompt + image to the OpenAI Responses API.

    Returns:
        Tuple of (text of the first output message, usage_dict)
    """
    response = client.responses.create(
        model=model_id,
        input=[
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": prompt},
                    {"type": "input_image", "image_url": image_data_uri},
                ],
            }
        ],
    )

    message = next(
        (item for item in response.output if getattr(item, "type", "message") == "message"),
        None
    )
    if message is None or not message.content:
        raise ExtractionError("Completion contained no output message")

    usage = getattr(response, "usage", None)
    return message.content[0].text, {
        "input_tokens": getattr(usage, "input_tokens", 0) or 0,
        "output_tokens": getattr(usage, "output_tokens", 0) or 0,
        "stop_reason": getattr(response, "status", None),
    }


def request_anthropic_completion(client, model_id: str, prompt: str, image_bytes: bytes,
                                 mime_type: str) -> tuple[str, dict]:
    """
    Send one prompt + image to the Anthropic Messages API.

    Returns:
        Tuple of (response_text, usage_dict)
    """
    response = client.messages.create(
        model=model_id,
        max_tokens=ANTHROPIC_MAX_TOKENS,
        messages=[
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": mime_type,
                            "data": base64.b64encode(image_bytes).decode("utf-8"),
                        },
                    },
                    {"type": "text", "text": prompt},
                ],
            }
        ],
    )

    text = "".join(getattr(block, "text", "") for block in response.content)
    return text, {
        "input_tokens": response.usage.input_tokens,
        "output_tokens": response.usage.output_tokens,
        "stop_reason": response.stop_reason,
    }


def request_completion(prompt: str, image_bytes: bytes, mime_type: str,
                       model_id: str, client=None) -> tuple[str, dict]:
    """Dispatch a prompt + image to whichever provider serves model_id."""
    if client is None:
        client = get_client_for_model(model_id)

    if is_anthropic_model(model_id):
        return request_anthropic_completion(client, model_id, prompt, image_bytes, mime_type)
    return request_openai_completion(
        client, model_id, prompt, encode_image_data_uri(image_bytes, mime_type)
    )


# =============================================================================
# Response Parsing
# =============================================================================

def clean_completion_text(text: str) -> str:
    """Strip Markdown code fences (```json ... ```) around a JSON reply."""
    if "```" in text:
        match = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
        if match:
            return match.group(1)
    return text.strip()


def repair_json(text: str) -> str:
    """
    Attempt to repair common JSON syntax errors from LLM output.

    Handles control characters and trailing commas.
    """
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', text)
    return re.sub(r',(\s*[}\]])', r'\1', text)


def parse_completion_json(text: str) -> dict:
    """Parse a (possibly fenced) completion into a JSON object."""
    cleaned = clean_completion_text(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            data = json.loads(repair_json(cleaned))
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Completion is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError(f"Expected JSON object, got {type(data).__name__}")
    return data


def parse_conversion_output(data: dict) -> ConversionOutput:
    """Validate the {question, options} shape and build a ConversionOutput."""
    question = data.get("question")
    options = data.get("options")

    if not isinstance(question, str):
        raise ExtractionError("Completion is missing a 'question' string")
    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        raise ExtractionError("Completion is missing an 'options' list of strings")

    return ConversionOutput(question=question, options=tuple(options))


# =============================================================================
# Extraction Operations
# =============================================================================

def convert_image_to_question(
    image_bytes: bytes,
    mime_type: str,
    model_id: str = None,
    client=None,
    on_usage: callable = None
) -> ConversionOutput:
    """
    Extract question text and options from an image of an exam question.

    Args:
        image_bytes: Raw image content
        mime_type: Declared MIME type (e.g. "image/png")
        model_id: Model to use (defaults to EXTRACTION_MODEL / DEFAULT_MODEL_ID)
        client: Provider client; created from the environment when omitted
        on_usage: Optional callback called with (model_id, usage_dict)

    Returns:
        ConversionOutput with HTML question and ordered HTML options

    Raises:
        ExtractionError: on transport failure or an unusable completion
    """
    model_id = model_id or get_default_model_id()
    logger = get_logger()
    logger.debug(f"Extracting question with {model_id} ({len(image_bytes):,} bytes)")

    try:
        text, usage = request_completion(
            get_prompt("extract_question"), image_bytes, mime_type, model_id, client=client
        )
    except ExtractionError:
        raise
    except Exception as e:
        raise ExtractionError(f"{type(e).__name__}: {e}") from e

    logger.info(
        f"Extraction: input={usage['input_tokens']:,}, "
        f"output={usage['output_tokens']:,}, stop={usage['stop_reason']}"
    )
    if on_usage:
        on_usage(model_id, usage)

    return parse_conversion_output(parse_completion_json(text))


def grade_difficulty(
    image_bytes: bytes,
    mime_type: str,
    model_id: str = None,
    client=None,
    on_usage: callable = None
) -> int:
    """
    Ask the model to grade question difficulty on a 1-10 scale.

    Raises:
        ExtractionError: on transport failure or a reply without a usable score
    """
    model_id = model_id or get_default_model_id()

    try:
        text, usage = request_completion(
            get_prompt("grade_difficulty"), image_bytes, mime_type, model_id, client=client
        )
    except ExtractionError:
        raise
    except Exception as e:
        raise ExtractionError(f"{type(e).__name__}: {e}") from e

    if on_usage:
        on_usage(model_id, usage)

    try:
        score = parse_completion_json(text).get("score")
    except ExtractionError:
        # Some models answer with a bare number
        match = re.search(r'\b(10|[1-9])\b', text)
        score = int(match.group(1)) if match else None

    if isinstance(score, str) and score.strip().isdigit():
        score = int(score)
    if not isinstance(score, int) or isinstance(score, bool):
        raise ExtractionError(f"Difficulty reply has no score: {text[:80]!r}")

    get_logger().info(f"Difficulty graded {score}/10 by {model_id}")
    return max(1, min(10, score))
