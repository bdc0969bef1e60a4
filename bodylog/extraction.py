# Extraction adapter: scale photo in, metrics record out.
import json
import logging
import math
import re
from dataclasses import dataclass

import httpx
from google import genai
from google.genai import errors, types

from .config import STRICT
from .errors import InputError, MalformedResponse, ProviderError, ProviderUnavailable, ValidationError

logger = logging.getLogger(__name__)

# Column order of the spreadsheet after the date and time cells.
METRIC_FIELDS = (
    'bodyAge', 'height', 'weight', 'bmi', 'bodyType', 'fat',
    'water', 'muscle', 'bone', 'entrails', 'bmr',
)
CATEGORICAL_FIELDS = ('bodyType',)
NUMERIC_FIELDS = tuple(f for f in METRIC_FIELDS if f not in CATEGORICAL_FIELDS)

EXTRACTION_PROMPT = (
    "Extract metrics as JSON ONLY: " + ", ".join(METRIC_FIELDS) + ". "
    "Use numbers for every metric except bodyType, which is the body type label "
    "shown on the scale. No text outside the JSON."
)

DEFAULT_MIME_TYPE = 'image/jpeg'

_FENCE_OPEN = re.compile(r'^```(?:json)?\s*')
_FENCE_CLOSE = re.compile(r'\s*```$')


@dataclass(frozen=True)
class ExtractionRequest:
    image_bytes: bytes
    mime_type: str = DEFAULT_MIME_TYPE
    instruction_prompt: str = EXTRACTION_PROMPT

    def contents(self):
        return [
            types.Part.from_bytes(data=self.image_bytes, mime_type=self.mime_type),
            self.instruction_prompt,
        ]


def strip_code_fence(text):
    """Trim the text and drop a leading ```/```json opener and a trailing ``` closer."""
    text = text.strip()
    text = _FENCE_OPEN.sub('', text, count=1)
    text = _FENCE_CLOSE.sub('', text, count=1)
    return text


def decode_record(text):
    """Parse the model's text into a dict. No attempt is made to dig JSON out of prose."""
    body = strip_code_fence(text)
    try:
        record = json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Model response is not valid JSON: {e}") from e
    if not isinstance(record, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(record).__name__}")
    return record


def _is_number(value):
    # NaN and Infinity parse as floats but cannot be sent to the Sheets API.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_record(record, policy=STRICT):
    """Check the record against METRIC_FIELDS.

    Under the lenient policy the record is passed through untouched and absent
    keys end up as empty cells. Under the strict policy missing or wrongly typed
    fields raise ValidationError before anything is written.
    """
    if policy != STRICT:
        absent = [f for f in METRIC_FIELDS if record.get(f) is None]
        if absent:
            logger.warning("Record is missing %s; logging empty cells", ", ".join(absent))
        return record

    missing, mistyped = [], []
    for name in METRIC_FIELDS:
        value = record.get(name)
        if value is None:
            missing.append(name)
        elif name in NUMERIC_FIELDS:
            if not _is_number(value):
                mistyped.append(name)
        elif not isinstance(value, str):
            mistyped.append(name)
    if missing or mistyped:
        raise ValidationError(missing=missing, mistyped=mistyped)
    return record


class MetricExtractor:
    """Sends a scale photo to Gemini and decodes the metrics it reads off it."""

    def __init__(self, settings, client=None):
        self.settings = settings
        self.client = client or genai.Client(
            api_key=settings.gemini_api_key,
            http_options=types.HttpOptions(timeout=int(settings.provider_timeout * 1000)),
        )

    def generate(self, request):
        try:
            response = self.client.models.generate_content(
                model=self.settings.gemini_model,
                contents=request.contents(),
            )
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Gemini unreachable: {e}") from e
        except errors.APIError as e:
            raise ProviderError(f"Gemini returned {e.code}: {e.message}") from e

        text = response.text if response is not None else None
        if not text or not text.strip():
            raise ProviderError("Gemini returned an empty response")
        return text

    def extract(self, image_bytes, mime_type=None):
        if not image_bytes:
            raise InputError("Uploaded image is empty")
        request = ExtractionRequest(image_bytes, mime_type or DEFAULT_MIME_TYPE)
        text = self.generate(request)
        record = decode_record(text)
        logger.info("Parsed values: %s", record)
        return validate_record(record, self.settings.missing_fields)
