"""Turns language model output into validated actionable steps."""

import json
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional, Union

from app.core.logging import logger
from app.schemas.care_plan import (
    DEFAULT_ACTION,
    DEFAULT_DURATION_DAYS,
    DEFAULT_TASK,
    ActionableSteps,
    ChecklistStep,
    Frequency,
    PlanStep,
)
from app.services.extraction_gateway import ExtractionGateway
from app.shared.exceptions import ExtractionFormatError


CODE_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\n?|\n?```")

FREQUENCY_ALIASES = {
    "daily": Frequency.DAILY,
    "every-day": Frequency.DAILY,
    "once-daily": Frequency.DAILY,
    "weekly": Frequency.WEEKLY,
    "every-week": Frequency.WEEKLY,
    "once-weekly": Frequency.WEEKLY,
    "as-needed": Frequency.AS_NEEDED,
    "when-needed": Frequency.AS_NEEDED,
    "prn": Frequency.AS_NEEDED,
}

PROMPT_TEMPLATE = """You are a medical task analyzer. Extract actionable items from a doctor's note.

Respond with ONLY a valid JSON object. No explanation, no markdown, no code blocks.

Required format:
{{
    "checklist": [
        {{
            "task": "specific one-time task",
            "dueDate": "{today}"
        }}
    ],
    "plan": [
        {{
            "action": "specific recurring action",
            "frequency": "daily|weekly|as-needed",
            "duration": 7,
            "startDate": "{today}"
        }}
    ]
}}

Rules:
- Today's date is {today}. Use it for any checklist dueDate or plan startDate that is not specified
- Dates must be in YYYY-MM-DD format
- Checklist items are one-time tasks; plan items are recurring actions
- If a frequency is not specified, use "as-needed"
- If a duration is not specified, use 7 (days)
- Convert bullet points or numbered lists into separate items
- Return empty arrays only when the note has truly no actionable items

Doctor's note:
{note}
"""


@dataclass
class StringEntry:
    """An extracted item given as bare text."""
    text: str


@dataclass
class StructuredEntry:
    """An extracted item given as a JSON object."""
    fields: dict = field(default_factory=dict)


ExtractedEntry = Union[StringEntry, StructuredEntry]


def build_prompt(note: str, today: date) -> str:
    """Build the extraction prompt anchored on today's date."""
    return PROMPT_TEMPLATE.format(today=today.isoformat(), note=note.strip())


def sanitize_response(raw: str) -> str:
    """Strip code fences and surrounding prose, leaving the JSON object text."""
    cleaned = CODE_FENCE_PATTERN.sub("", raw or "")

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise ExtractionFormatError("Response does not contain a JSON object")

    cleaned = cleaned[start:end + 1].strip()
    if not cleaned.startswith("{") or not cleaned.endswith("}"):
        raise ExtractionFormatError("Response is not a valid JSON object")

    return cleaned


def resolve_entry(raw: Any) -> ExtractedEntry:
    """Resolve one array element into the tagged union."""
    if isinstance(raw, str):
        return StringEntry(text=raw.strip())
    if isinstance(raw, dict):
        return StructuredEntry(fields=raw)
    logger.warning(f"Unexpected extracted entry of type {type(raw).__name__}, using defaults")
    return StructuredEntry()


def parse_date(value: Any, default: date) -> date:
    """Parse an ISO date or datetime string, falling back to ``default``."""
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            logger.debug(f"Unparseable date {value!r}, using {default.isoformat()}")
    return default


def parse_frequency(value: Any) -> Frequency:
    if value is None or (isinstance(value, str) and not value.strip()):
        return Frequency.AS_NEEDED
    if not isinstance(value, str):
        return Frequency.UNKNOWN
    key = re.sub(r"[\s_]+", "-", value.strip().lower())
    return FREQUENCY_ALIASES.get(key, Frequency.UNKNOWN)


def parse_duration(value: Any) -> int:
    """Return a positive whole number of days, or the default."""
    if isinstance(value, bool):
        return DEFAULT_DURATION_DAYS
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_DURATION_DAYS
    if isinstance(value, (int, float)) and math.isfinite(value) and int(value) > 0:
        return int(value)
    return DEFAULT_DURATION_DAYS


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def normalize_checklist_entry(raw: Any, today: date) -> ChecklistStep:
    entry = resolve_entry(raw)
    if isinstance(entry, StringEntry):
        return ChecklistStep(task=_text(entry.text, DEFAULT_TASK), due_date=today)
    return ChecklistStep(
        task=_text(entry.fields.get("task"), DEFAULT_TASK),
        due_date=parse_date(entry.fields.get("dueDate"), today),
    )


def normalize_plan_entry(raw: Any, today: date) -> PlanStep:
    entry = resolve_entry(raw)
    if isinstance(entry, StringEntry):
        return PlanStep(
            action=_text(entry.text, DEFAULT_ACTION),
            frequency=Frequency.AS_NEEDED,
            duration=DEFAULT_DURATION_DAYS,
            start_date=today,
        )
    return PlanStep(
        action=_text(entry.fields.get("action"), DEFAULT_ACTION),
        frequency=parse_frequency(entry.fields.get("frequency")),
        duration=parse_duration(entry.fields.get("duration")),
        start_date=parse_date(entry.fields.get("startDate"), today),
    )


def normalize(raw_model_output: str, today: date) -> ActionableSteps:
    """
    Recover actionable steps from raw model output.

    Args:
        raw_model_output: Text returned by the extraction gateway
        today: Date used for any missing or unparseable due/start date

    Returns:
        Normalized checklist and plan (possibly both empty)

    Raises:
        ExtractionFormatError: If no JSON object with checklist and plan
            arrays can be recovered
    """
    sanitized = sanitize_response(raw_model_output)
    logger.debug(f"Sanitized extraction response: {sanitized[:500]}")

    try:
        parsed = json.loads(sanitized)
    except json.JSONDecodeError as e:
        raise ExtractionFormatError(f"Failed to parse model response: {e.msg}", e) from e

    if not isinstance(parsed, dict):
        raise ExtractionFormatError("Model response is not a JSON object")

    checklist = parsed.get("checklist")
    if not isinstance(checklist, list):
        raise ExtractionFormatError("Missing or invalid checklist array in model response")

    plan = parsed.get("plan")
    if not isinstance(plan, list):
        raise ExtractionFormatError("Missing or invalid plan array in model response")

    return ActionableSteps(
        checklist=[normalize_checklist_entry(item, today) for item in checklist],
        plan=[normalize_plan_entry(item, today) for item in plan],
    )


class ResponseNormalizer:
    """Runs a note through the extraction gateway and normalizes the answer."""

    def __init__(self, gateway: ExtractionGateway):
        self.gateway = gateway

    def extract(self, note: str, today: Optional[date] = None) -> ActionableSteps:
        today = today or date.today()
        prompt = build_prompt(note, today)

        logger.info("Sending note to extraction gateway")
        raw = self.gateway.generate(prompt)

        try:
            steps = normalize(raw, today)
        except ExtractionFormatError:
            logger.error(f"Could not normalize extraction response. Raw: {raw[:1000]}")
            raise

        if steps.is_empty:
            logger.warning("Extraction returned no checklist or plan items")
        else:
            logger.info(f"Extracted {len(steps.checklist)} checklist and {len(steps.plan)} plan items")

        return steps
