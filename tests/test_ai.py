import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from moodpulse import ai, engine
from moodpulse.engine import HAPPY, SAD, STRESSED, MoodEntry
from moodpulse.resilience import AIServiceError

TODAY = date(2024, 3, 15)


def entries(mood=HAPPY, count=3):
    return [
        MoodEntry(mood, datetime(2024, 3, 15, 12) - timedelta(days=i), f"entry {i}")
        for i in range(count)
    ]


def analysis(history):
    return engine.analyze(history, today=TODAY).value


def test_parse_classification_accepts_object_and_list():
    assert ai.parse_classification('{"emotion": "Sadness", "confidence": 0.9}') == ("sadness", 0.9)
    assert ai.parse_classification('[{"label": "joy", "score": 0.7}]') == ("joy", 0.7)
    assert ai.parse_classification('{"emotion": "fear", "confidence": 3}') == ("fear", 1.0)


def test_parse_classification_rejects_non_json():
    with pytest.raises(AIServiceError) as excinfo:
        ai.parse_classification("I think the user is sad")
    assert excinfo.value.error_type == "malformed_output"


def test_classify_recent_moods_maps_emotions(monkeypatch):
    prompts = []

    def fake_call(prompt):
        prompts.append(prompt)
        return '{"emotion": "joy", "confidence": 0.85}'

    monkeypatch.setattr(ai, "_call_gemini_api", fake_call)
    assert ai.classify_recent_moods(entries(SAD)) == (HAPPY, 0.85)
    assert 'Sad: "entry 0"' in prompts[0]

    monkeypatch.setattr(ai, "_call_gemini_api", lambda prompt: '{"emotion": "fear", "confidence": 0.6}')
    assert ai.classify_recent_moods(entries()) == (STRESSED, 0.6)


def test_classify_without_entries_raises():
    with pytest.raises(AIServiceError):
        ai.classify_recent_moods([])


def test_gemini_call_requires_api_key(monkeypatch):
    monkeypatch.setattr(ai, "GEMINI_API_KEY", None)
    try:
        with pytest.raises(AIServiceError) as excinfo:
            ai._call_gemini_api("hello")
        assert excinfo.value.error_type == "configuration"
    finally:
        ai.gemini_circuit_breaker.reset()


def test_confident_classification_overrides_dominant_mood():
    history = entries()
    outcome = ai.enrich_analysis(analysis(history), history, classifier=lambda _: (STRESSED, 0.95))

    assert outcome.warnings == []
    assert outcome.value.insights.dominant_mood == STRESSED
    assert list(outcome.value.recommendations) == engine.MOOD_RECOMMENDATIONS[STRESSED]


def test_low_confidence_keeps_statistical_result():
    history = entries()
    result = analysis(history)
    outcome = ai.enrich_analysis(result, history, threshold=0.8, classifier=lambda _: (STRESSED, 0.8))

    assert outcome.value is result
    assert outcome.warnings == []


def test_enrichment_failure_degrades_to_statistics():
    history = entries()
    result = analysis(history)

    def failing(_):
        raise AIServiceError("quota", error_type="rate_limit")

    outcome = ai.enrich_analysis(result, history, classifier=failing)
    assert outcome.value is result
    assert outcome.warnings == ["AI enrichment unavailable (rate_limit); statistical analysis only"]


def test_enrichment_is_time_bounded():
    history = entries()
    result = analysis(history)
    release = threading.Event()

    def slow(_):
        release.wait(5)
        return STRESSED, 0.99

    try:
        outcome = ai.enrich_analysis(result, history, timeout=0.05, classifier=slow)
    finally:
        release.set()

    assert outcome.value is result
    assert outcome.warnings == ["AI enrichment timed out; statistical analysis only"]


def test_enrichment_hands_classifier_entries_on_analysis_clock():
    kiritimati = timezone(timedelta(hours=14))
    docs = [
        {"moodState": "Sad", "timestamp": "2024-03-14T12:00:00+00:00", "moodText": "late"},
        {"moodState": "Happy", "timestamp": "2024-03-14T08:00:00+00:00", "moodText": "early"},
    ]
    seen = []

    def recording(received):
        seen.extend(received)
        return HAPPY, 0.5

    ai.enrich_analysis(analysis(entries()), docs, classifier=recording, tz=kiritimati)

    assert [(e.mood_text, e.timestamp) for e in seen] == [
        ("early", datetime(2024, 3, 14, 22)),
        ("late", datetime(2024, 3, 15, 2)),
    ]
