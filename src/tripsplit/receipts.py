"""Receipt image -> expense draft via the Gemini generateContent REST API."""

import base64
import json
import logging
import math
from typing import Any

import requests

from .config import get_gemini_models, get_google_api_key
from .errors import ReceiptError
from .models import ReceiptInfo

logger = logging.getLogger(__name__)

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

CATEGORIES = ("Food", "Travel", "Stay", "Shopping", "Activity", "Other")

MAX_ITEMS = 10
TITLE_ITEMS = 6

PROMPT = """
Extract receipt info as strict JSON.

Fields:
- merchant: short name (e.g., "Domino's", "Zomato", "Cafe XYZ")
- category: one of ["Food","Travel","Stay","Shopping","Activity","Other"]
- items: array of up to 10 concise item names (strings). (Optional; short.)
- total: final bill total as number

Rules:
- Reply ONLY with JSON (no code fences, no extra text).
- If something missing, do best-effort guess; keep "Other" category if unsure.

Example:
{"merchant":"Domino's","category":"Food","items":["pizza","garlic bread","coke"],"total":1249}
"""


def parse_model_json(text: str) -> dict[str, Any]:
    """
    Parse the JSON object in a model reply.

    Code fences are stripped; if the reply still isn't valid JSON, the
    outermost {...} slice is tried.

    Raises:
        ReceiptError: If no JSON object can be parsed
    """
    clean = text.strip().replace("```json", "").replace("```", "").strip()

    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError:
        start = clean.find("{")
        end = clean.rfind("}")
        if start < 0 or end <= start:
            raise ReceiptError("Failed to parse JSON from model response") from None
        try:
            parsed = json.loads(clean[start : end + 1])
        except json.JSONDecodeError as e:
            raise ReceiptError("Failed to parse JSON from model response") from e

    if not isinstance(parsed, dict):
        raise ReceiptError("Model response is not a JSON object")
    return parsed


def normalize_receipt(data: dict[str, Any], model: str | None = None) -> ReceiptInfo:
    """Coerce a parsed model reply into a ReceiptInfo with a suggested title."""
    merchant = str(data.get("merchant") or "").strip()

    category = str(data.get("category") or "Other").strip()
    if category not in CATEGORIES:
        category = "Other"

    raw_items = data.get("items")
    items: list[str] = []
    if isinstance(raw_items, list):
        items = [str(x or "").strip() for x in raw_items[:MAX_ITEMS]]
        items = [x for x in items if x]

    try:
        total = float(data.get("total"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        total = 0.0
    if not math.isfinite(total) or total < 0:
        total = 0.0

    top = merchant or category or "Expense"
    listed = ", ".join(items[:TITLE_ITEMS])
    title = f"{top}\n{listed}" if listed else top

    return ReceiptInfo(
        merchant=merchant,
        category=category,
        items=items,
        total=total,
        title=title,
        model=model,
    )


def _call_model(model: str, api_key: str, image_b64: str, mime_type: str) -> ReceiptInfo:
    payload = {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": PROMPT},
                    {"inline_data": {"mime_type": mime_type, "data": image_b64}},
                ],
            }
        ]
    }

    try:
        response = requests.post(
            API_URL.format(model=model),
            params={"key": api_key},
            json=payload,
            timeout=60,
        )
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        raise ReceiptError(f"Receipt request to {model} failed: {e}") from e
    except ValueError as e:
        raise ReceiptError(f"Invalid response from {model}: {e}") from e

    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ReceiptError("Empty AI response") from e
    if not isinstance(text, str) or not text.strip():
        raise ReceiptError("Empty AI response")

    return normalize_receipt(parse_model_json(text), model=model)


def extract_receipt(
    image: bytes,
    mime_type: str = "image/jpeg",
    api_key: str | None = None,
    models: list[str] | None = None,
) -> ReceiptInfo:
    """
    Extract merchant, category, items and total from a receipt image.

    Models are tried in order (primary first, then fallbacks); the first
    successful reply wins.

    Args:
        image: Raw image bytes
        mime_type: Image MIME type
        api_key: Gemini API key (default: GOOGLE_API_KEY)
        models: Model names to try (default: GEMINI_MODEL + GEMINI_FALLBACKS)

    Returns:
        ReceiptInfo including a suggested transaction title

    Raises:
        ReceiptError: If no API key is configured or every model fails
    """
    if not image:
        raise ReceiptError("file is required (image)")

    key = api_key or get_google_api_key()
    if not key:
        raise ReceiptError("Missing GOOGLE_API_KEY")

    candidates = models if models is not None else get_gemini_models()
    image_b64 = base64.b64encode(image).decode("ascii")

    last_error: ReceiptError | None = None
    for model in candidates:
        try:
            return _call_model(model, key, image_b64, mime_type)
        except ReceiptError as e:
            logger.warning("Receipt extraction with %s failed: %s", model, e)
            last_error = e

    raise last_error or ReceiptError("All model candidates failed")
