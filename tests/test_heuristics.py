import pytest

from moodpulse.heuristics import CRITICAL_LANGUAGE, STRESS_LANGUAGE, detect_sentiment, scan_risk_language


def test_detect_sentiment():
    assert detect_sentiment("Feeling great, what a wonderful day") == "positive"
    assert detect_sentiment("Awful and depressed") == "negative"
    assert detect_sentiment("Went for a walk") == "neutral"
    assert detect_sentiment("") == "neutral"


def test_detect_sentiment_ignores_words_inside_other_words():
    assert detect_sentiment("Unhappy about the goodbye") == "neutral"
    assert detect_sentiment("Badminton then a crusade of chores") == "neutral"


def test_scan_risk_language():
    assert scan_risk_language("I feel hopeless and overwhelmed") == [CRITICAL_LANGUAGE, STRESS_LANGUAGE]
    assert scan_risk_language("So much pressure at work") == [STRESS_LANGUAGE]
    assert scan_risk_language("Lovely lunch with friends") == []
    assert scan_risk_language("I just want to give up") == [CRITICAL_LANGUAGE]
    assert scan_risk_language("I can't go on like this") == [CRITICAL_LANGUAGE]


@pytest.mark.parametrize("text", [
    "Attending a lovely wedding, then a new diet plan",
    "Spending the afternoon on pending tasks",
    "Studied hard and picked up new skills",
    "Quick stop at the pharmacy",
])
def test_scan_risk_language_ignores_harmless_words(text):
    assert scan_risk_language(text) == []


def test_stress_words_match_inflections():
    assert scan_risk_language("Really stressed and panicking") == [STRESS_LANGUAGE]
