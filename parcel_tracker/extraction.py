"""Receipt scanning for the Parcel Tracker.

This module sends a photographed LR or transport receipt to Google Gemini
and validates the returned fields with Pydantic so they can prefill the
entry form.
"""

import json
import logging
import os
import re
import time
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .config import DEFAULT_GEMINI_MODEL
from .errors import ConfigurationError, ExtractionError
from .schemas import ExtractedParcelData


logger = logging.getLogger(__name__)

# Gemini rate limiting (15 requests per minute for free tier)
_last_gemini_call: float = 0.0
GEMINI_DELAY = 4.0  # seconds between requests

FAILURE_MESSAGE = "Failed to extract data from image."


# The extraction prompt for Gemini
EXTRACTION_PROMPT = '''Analyze this image of a transport receipt or LR (Lorry Receipt).
Extract the following information in JSON format:
- lrNumber: The LR Number or Receipt Number.
- partyName: The name of the party or consignee being billed.
- weight: The total weight in kg (number only).
- totalAmount: The total amount or grand total (number only).
- date: The date of the receipt in YYYY-MM-DD format.

If a field is not found, return null for that field.
Return ONLY the JSON object, no markdown formatting.'''


def _get_gemini_client(api_key: Optional[str] = None) -> genai.Client:
    """Get configured Gemini client."""
    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise ConfigurationError("Gemini API Key is not configured.")
    return genai.Client(api_key=api_key)


def _respect_gemini_rate_limit() -> None:
    """Ensure we respect Gemini's rate limit."""
    global _last_gemini_call
    elapsed = time.time() - _last_gemini_call
    if elapsed < GEMINI_DELAY:
        time.sleep(GEMINI_DELAY - elapsed)
    _last_gemini_call = time.time()


def _parse_json_response(response_text: str) -> dict:
    """Parse JSON from Gemini response, handling markdown code blocks.

    Args:
        response_text: Raw response text from Gemini.

    Returns:
        Parsed JSON dictionary.

    Raises:
        ValueError: If JSON parsing fails.
    """
    text = response_text.strip()

    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if json_match:
        text = json_match.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        json_start = text.find("{")
        json_end = text.rfind("}") + 1
        if json_start < 0 or json_end <= json_start:
            raise ValueError(f"Failed to parse JSON response: {e}") from e
        try:
            data = json.loads(text[json_start:json_end])
        except json.JSONDecodeError as inner:
            raise ValueError(f"Failed to parse JSON response: {inner}") from inner

    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


def extract_parcel_data(
    image_bytes: bytes,
    mime_type: str = "image/jpeg",
    api_key: Optional[str] = None,
    model: str = DEFAULT_GEMINI_MODEL,
) -> ExtractedParcelData:
    """Extract parcel fields from a receipt photo using Gemini.

    Args:
        image_bytes: The photo.
        mime_type: MIME type of the photo.
        api_key: Gemini API key, read from the environment when omitted.
        model: Gemini model name.

    Returns:
        ExtractedParcelData; fields the model could not read are None.

    Raises:
        ConfigurationError: If no API key is available.
        ExtractionError: If the request fails or the answer is not JSON.
    """
    gemini_client = _get_gemini_client(api_key)
    _respect_gemini_rate_limit()

    try:
        response = gemini_client.models.generate_content(
            model=model,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                EXTRACTION_PROMPT,
            ],
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        if not response.text:
            raise ValueError("No response from AI")
        data = _parse_json_response(response.text)
        return ExtractedParcelData.model_validate(data)
    except (genai_errors.APIError, ValueError) as e:
        logger.error("Gemini extraction error: %s", e)
        raise ExtractionError(FAILURE_MESSAGE) from e


def merge_into_form(form: dict, extracted: ExtractedParcelData) -> dict:
    """Prefill form values with what the scan found.

    Values the scan could not read keep the current form value.

    Args:
        form: Current form values keyed by snake_case field name.
        extracted: Scan result.

    Returns:
        A new dict with the merged values.
    """
    merged = dict(form)
    for field, value in extracted.model_dump().items():
        if value is not None:
            merged[field] = value
    return merged
