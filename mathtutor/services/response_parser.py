"""Recover structured JSON from free-form LLM output.

Models are asked to answer with a single JSON object, but replies regularly
wrap it in a markdown fence, add commentary around it, or over-escape
characters such as ``*`` and ``?``. The helpers here locate the object,
clean it up, parse it and validate it against the expected shape.

Failures are reported as :class:`ExtractionError` subclasses whose ``stage``
names the step that failed (``no_json``, ``parse`` or ``schema``). Nothing in
this module calls the model again; retrying is up to the caller.
"""
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, StrictStr, ValidationError

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
ESCAPED_SYMBOL = re.compile(r"\\([*?])")
GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")
NESTED_OBJECT = re.compile(r"\{(?:[^{}]|\{[^{}]*\})*\}")


class ExtractionError(ValueError):
    """Base class for extraction failures."""

    stage = "extraction"

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class NoJSONFoundError(ExtractionError):
    stage = "no_json"


class JSONParseError(ExtractionError):
    stage = "parse"


class SchemaViolationError(ExtractionError):
    stage = "schema"

    def __init__(self, message: str, raw: str = "", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, raw)
        self.errors = errors or []


# Expected shapes
class ChatReply(BaseModel):
    quickrep: StrictStr = Field(min_length=1)
    explication: StrictStr = Field(min_length=1)


class GeneratedQuestion(BaseModel):
    question: StrictStr = Field(min_length=1)
    answer: StrictStr = Field(min_length=1)
    explanation: StrictStr = Field(min_length=1)


class GeneratedQuiz(BaseModel):
    questions: List[GeneratedQuestion] = Field(min_length=1)


def locate_json(text: str) -> str:
    """Return the fenced ``json`` block, else the first-``{``-to-last-``}`` slice."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise NoJSONFoundError("No JSON object found in model response", raw=text)

    match = FENCED_JSON.search(text)
    if match:
        return match.group(1)
    return text[start:end + 1]


def sanitize(text: str) -> str:
    """Drop backslashes before ``*``/``?`` and collapse doubled backslashes."""
    text = ESCAPED_SYMBOL.sub(r"\1", text)
    return text.replace("\\\\", "\\")


# Parse strategies, strictest first. Each receives the sanitized candidate
# slice and the sanitized full response and returns the text to decode, or
# None when it has nothing to offer.
def _candidate_slice(candidate: str, full: str) -> Optional[str]:
    return candidate


def _greedy_braces(candidate: str, full: str) -> Optional[str]:
    match = GREEDY_OBJECT.search(full)
    return match.group(0) if match else None


def _nested_braces(candidate: str, full: str) -> Optional[str]:
    match = NESTED_OBJECT.search(full)
    return match.group(0) if match else None


PARSE_STRATEGIES: List[Callable[[str, str], Optional[str]]] = [
    _candidate_slice,
    _greedy_braces,
    _nested_braces,
]


def _decode_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def extract_json(text: str) -> Dict[str, Any]:
    """Locate, sanitize and parse the JSON object embedded in ``text``."""
    if not isinstance(text, str):
        raise NoJSONFoundError("Model response is not text", raw=repr(text))

    candidate = sanitize(locate_json(text))
    full = sanitize(text)

    for strategy in PARSE_STRATEGIES:
        snippet = strategy(candidate, full)
        if snippet is None:
            continue
        parsed = _decode_object(snippet)
        if parsed is not None:
            if strategy is not _candidate_slice:
                logger.info("Recovered JSON with fallback strategy %s", strategy.__name__)
            return parsed

    logger.debug("Unparseable model response: %.500s", text)
    raise JSONParseError("Model response does not contain valid JSON", raw=text)


def _validate(model: type, data: Dict[str, Any], raw: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SchemaViolationError(
            f"Model response has an invalid format ({e.error_count()} error(s))",
            raw=raw,
            errors=e.errors(include_url=False),
        )


def parse_chat_reply(text: str) -> ChatReply:
    """Parse a tutor reply carrying ``quickrep`` and ``explication``."""
    return _validate(ChatReply, extract_json(text), text)


def parse_quiz(text: str) -> GeneratedQuiz:
    """Parse a generated quiz carrying a ``questions`` array."""
    return _validate(GeneratedQuiz, extract_json(text), text)
