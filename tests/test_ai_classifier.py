import pytest

from utils.ai_classifier import (
    AIClassificationError,
    build_classification_prompt,
    classify_complaint,
    normalize_category,
    normalize_priority,
    parse_classification,
)


def test_parse_plain_json():
    result = parse_classification(
        '{"category": "Water Supply", "priority": "high", "summary": "No water since Monday.",'
        ' "sentiment": "urgent", "confidence": "0.8"}'
    )
    assert result == {
        "category": "Water Supply",
        "priority": "HIGH",
        "summary": "No water since Monday.",
        "sentiment": "URGENT",
        "confidence": 0.8,
    }


def test_parse_tolerates_code_fences_and_noise():
    raw = 'Here you go:\n```json\n{"category": "LAW & ORDER", "priority": "CRITICAL"}\n```'
    result = parse_classification(raw)
    assert result["category"] == "Law & Order"
    assert result["priority"] == "CRITICAL"
    assert result["sentiment"] is None
    assert result["confidence"] is None


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not json at all",
        '["Road & Transport", "LOW"]',
        '{"category": "Weather", "priority": "LOW"}',
        '{"category": "Housing", "priority": "ASAP"}',
    ],
)
def test_unusable_output_raises(raw):
    with pytest.raises(AIClassificationError):
        parse_classification(raw)


def test_normalizers():
    assert normalize_category("road-transport") == "Road & Transport"
    assert normalize_category("Space") is None
    assert normalize_priority(" medium ") == "MEDIUM"
    assert normalize_priority(None) is None


def test_prompt_lists_categories_and_language():
    prompt = build_classification_prompt("Broken pipe", "Water leaking on the road", "Hindi")
    assert "Public Health" in prompt
    assert "(declared: Hindi)" in prompt
    assert prompt.endswith("Description: Water leaking on the road")


def test_classify_requires_api_key(app, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(AIClassificationError, match="GEMINI_API_KEY"):
        classify_complaint("Broken pipe", "Water leaking on the road")
