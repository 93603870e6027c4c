"""
AI task generation: turns free text into validated GeneratedTask records.

Pipeline for a single request:
    prepare_request -> build_prompt -> invoke_model -> normalize_response
    -> validate_response
Any failure after prepare_request goes through classify_error, so callers
only ever see ValidationFailure, QuotaExceeded or GenerationFailure.
Nothing here is retried; that is left to the caller.
"""
import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Optional, Union

import anthropic
from bs4 import BeautifulSoup
from pydantic import BaseModel, TypeAdapter, ValidationError

from config import AI_TIMEOUT_SECONDS, ANTHROPIC_MODEL
from errors import (
    DomainError,
    GenerationFailure,
    InvalidCredential,
    QuotaExceeded,
    ValidationFailure,
)
from models import GeneratedTask, GenerationMode
from prompts import ENHANCE_PROMPT, SUBTASKS_PROMPT, SYSTEM_PROMPT

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 500
TEMPERATURE = 0.2
MAX_TOKENS = 1024

# Anthropic keys look like sk-ant-api03-<base64url>
CREDENTIAL_PATTERN = re.compile(r"^sk-ant-[A-Za-z0-9_-]{20,}$")
DELIMITER_TAG = re.compile(r"<\s*/?\s*user_input\s*>", re.IGNORECASE)
OPENING_FENCE = re.compile(r"^```[\w-]*")

GenerationResult = Union[GeneratedTask, list[GeneratedTask]]

_task_list = TypeAdapter(list[GeneratedTask])


class GenerationRequest(BaseModel):
    raw_text: str
    mode: GenerationMode
    credential: str


class MalformedResponse(Exception):
    """Model reply is not parseable JSON."""


class SchemaViolation(Exception):
    """Model reply is JSON but does not match the GeneratedTask contract."""

    def __init__(self, violations: list[str]):
        self.violations = violations
        super().__init__("; ".join(violations))


class ModelTimeout(Exception):
    """Model did not answer within AI_TIMEOUT_SECONDS."""


# Prompt building

def sanitize_text(text: str) -> str:
    """
    Strip HTML markup and surrounding whitespace from user text.
    get_text() decodes entities, so the text is parsed again until it stops
    changing; entity-encoded markup is stripped rather than decoded into tags.
    """
    while True:
        stripped = BeautifulSoup(text, "html.parser").get_text()
        if stripped == text:
            return text.strip()
        text = stripped


def validate_credential(credential: Optional[str]) -> None:
    """Reject a missing or malformed provider key before any I/O happens."""
    if not credential or not CREDENTIAL_PATTERN.match(credential):
        raise InvalidCredential()


def prepare_request(raw_text: str, mode: GenerationMode, credential: Optional[str]) -> GenerationRequest:
    text = sanitize_text(raw_text)
    if not text:
        raise ValidationFailure("Text is empty")
    if len(text) > MAX_INPUT_LENGTH:
        raise ValidationFailure(f"Text too long to process (max {MAX_INPUT_LENGTH} characters)")
    validate_credential(credential)
    return GenerationRequest(raw_text=text, mode=mode, credential=credential)


def build_prompt(text: str, mode: GenerationMode, now: Optional[datetime] = None) -> str:
    """
    Fill the template for mode with the user text and the current time.
    Delimiter tags are removed from the text so it cannot close the
    <user_input> block early.
    """
    now = now or datetime.now(timezone.utc)
    template = SUBTASKS_PROMPT if mode == GenerationMode.SUBTASKS else ENHANCE_PROMPT
    return template.format(now=now.isoformat(timespec="seconds"), text=DELIMITER_TAG.sub("", text))


# Model invocation

async def invoke_model(prompt: str, system: str, credential: str) -> str:
    """
    Send one request to the Messages API and return the reply text.
    The client is closed on exit, including when the timeout cancels the call.
    """
    async with anthropic.AsyncAnthropic(
        api_key=credential,
        max_retries=0,
        timeout=AI_TIMEOUT_SECONDS,
    ) as client:
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=ANTHROPIC_MODEL,
                    max_tokens=MAX_TOKENS,
                    temperature=TEMPERATURE,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=AI_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            raise ModelTimeout(f"no response from model within {AI_TIMEOUT_SECONDS}s")

    return "".join(block.text for block in response.content if block.type == "text")


# Response handling

def normalize_response(raw: str) -> str:
    """Strip code fences (```json ... ```) the model may wrap around its JSON."""
    text = raw.strip()
    if text.startswith("```"):
        text = OPENING_FENCE.sub("", text, count=1)
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error["loc"]) or "<root>"
    return f"{location}: {error['msg']}"


def validate_response(text: str, mode: GenerationMode) -> GenerationResult:
    """
    Parse text as JSON and check it against the GeneratedTask contract.

    Returns a GeneratedTask for ENHANCE and a non-empty list for SUBTASKS.
    A lone object is accepted where a list was expected. Every violated field
    is reported, not only the first one.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"reply is not valid JSON: {e}") from e

    if mode == GenerationMode.SUBTASKS:
        if isinstance(payload, dict):
            payload = [payload]
        if isinstance(payload, list) and not payload:
            raise SchemaViolation(["<root>: expected at least one task"])
        try:
            return _task_list.validate_python(payload)
        except ValidationError as e:
            raise SchemaViolation([_describe(error) for error in e.errors()]) from e

    try:
        return GeneratedTask.model_validate(payload)
    except ValidationError as e:
        raise SchemaViolation([_describe(error) for error in e.errors()]) from e


# Error classification

def _is_quota_error(exc: Exception) -> bool:
    if isinstance(exc, anthropic.RateLimitError):
        return True
    if isinstance(exc, anthropic.APIStatusError) and exc.status_code == 429:
        return True
    return isinstance(exc, anthropic.APIError) and "resource exhausted" in str(exc).lower()


def classify_error(exc: Exception) -> DomainError:
    """Map any pipeline failure to one of the caller-visible error kinds."""
    if isinstance(exc, ValidationFailure):
        return exc
    if _is_quota_error(exc):
        logger.warning("AI provider quota exceeded: %s", exc)
        return QuotaExceeded()
    if isinstance(exc, SchemaViolation):
        logger.error("AI reply failed schema validation: %s", exc.violations)
    else:
        logger.error("AI generation failed: %s", exc, exc_info=exc)
    return GenerationFailure()


async def generate(raw_text: str, mode: GenerationMode, credential: Optional[str]) -> GenerationResult:
    """Generate one task (ENHANCE) or a list of subtasks (SUBTASKS) from raw_text."""
    request = prepare_request(raw_text, mode, credential)
    prompt = build_prompt(request.raw_text, request.mode)

    try:
        reply = await invoke_model(prompt, SYSTEM_PROMPT, request.credential)
        logger.debug("AI reply: %s", reply)
        return validate_response(normalize_response(reply), request.mode)
    except Exception as e:
        raise classify_error(e) from e
