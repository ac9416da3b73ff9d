"""Gemini text classification for newly submitted complaints."""
import json
import os
import re
from typing import Any, Dict, Optional

from flask import current_app
from google import genai
from google.genai import types

from models import COMPLAINT_CATEGORIES, COMPLAINT_PRIORITIES

SENTIMENTS = ("NEGATIVE", "NEUTRAL", "POSITIVE", "URGENT")


class AIClassificationError(Exception):
    """Raised when Gemini cannot return a usable classification."""


def _first_json_block(text: str) -> str:
    """Extract the first JSON object block from free-form text."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def _safe_json_loads(raw_text: str) -> Dict[str, Any]:
    """Parse JSON robustly, tolerating leading/trailing noise or code fences."""
    cleaned = raw_text.strip()
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*", "", cleaned).strip()
    cleaned = re.sub(r"```$", "", cleaned).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return json.loads(_first_json_block(cleaned))


def normalize_priority(value: Any) -> Optional[str]:
    if not value:
        return None
    normalized = str(value).strip().upper()
    return normalized if normalized in COMPLAINT_PRIORITIES else None


def normalize_category(value: Any) -> Optional[str]:
    if not value:
        return None
    wanted = re.sub(r"[^a-z]", "", str(value).lower())
    for category in COMPLAINT_CATEGORIES:
        if re.sub(r"[^a-z]", "", category.lower()) == wanted:
            return category
    return None


def build_classification_prompt(title: str, description: str, language: Optional[str] = None) -> str:
    categories = ", ".join(COMPLAINT_CATEGORIES)
    return (
        "You triage citizen grievances for a municipal redressal portal. "
        "Classify the complaint below. It may be written in any Indian language"
        f"{f' (declared: {language})' if language else ''}. "
        "Return strict JSON with fields: "
        f"category (one of: {categories}), "
        "priority (LOW|MEDIUM|HIGH|CRITICAL; CRITICAL only for danger to life or public safety), "
        "summary (one English sentence), sentiment (NEGATIVE|NEUTRAL|POSITIVE|URGENT), "
        "confidence (0-1). Do not include markdown. JSON only.\n\n"
        f"Title: {title}\n"
        f"Description: {description}"
    )


def classify_complaint(title: str, description: str, language: Optional[str] = None) -> Dict[str, Any]:
    api_key = current_app.config.get("GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise AIClassificationError("GEMINI_API_KEY is not configured")

    client = genai.Client(api_key=api_key)
    model_name = current_app.config.get("GEMINI_CLASSIFIER_MODEL", "gemini-2.5-flash")

    current_app.logger.info("Dispatching Gemini complaint classification", extra={"model": model_name})

    try:
        response = client.models.generate_content(
            model=model_name,
            contents=build_classification_prompt(title, description, language),
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
    except Exception as exc:  # pragma: no cover - relies on remote service
        current_app.logger.exception("Gemini classification request failed")
        raise AIClassificationError("Gemini classification request failed") from exc

    return parse_classification((response.text or "").strip())


def parse_classification(raw_text: str) -> Dict[str, Any]:
    if not raw_text:
        raise AIClassificationError("Gemini returned an empty classification")
    try:
        payload = _safe_json_loads(raw_text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise AIClassificationError("Gemini returned non-JSON output") from exc
    if not isinstance(payload, dict):
        raise AIClassificationError("Gemini classification is not a JSON object")

    category = normalize_category(payload.get("category"))
    priority = normalize_priority(payload.get("priority"))
    if not category or not priority:
        raise AIClassificationError("Gemini did not return a valid category and priority")

    sentiment = str(payload.get("sentiment") or "").strip().upper()
    try:
        confidence = float(payload.get("confidence")) if payload.get("confidence") not in (None, "") else None
    except (TypeError, ValueError):
        confidence = None

    return {
        "category": category,
        "priority": priority,
        "summary": str(payload.get("summary") or "").strip() or None,
        "sentiment": sentiment if sentiment in SENTIMENTS else None,
        "confidence": confidence,
    }
