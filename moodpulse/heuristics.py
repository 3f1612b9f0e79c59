"""Keyword heuristics over the free text attached to a mood entry.

Words match on word boundaries, so "diet" never counts as "die". Stress
words also match their inflections ("stressed", "panicking").
"""

import re
from typing import List

POSITIVE_WORDS = ["happy", "good", "great", "awesome", "wonderful", "amazing", "fantastic"]
NEGATIVE_WORDS = ["sad", "bad", "terrible", "awful", "horrible", "depressed", "anxious"]

RISK_WORDS = [
    "suicide", "kill", "die", "death", "hurt", "harm", "hopeless",
    "worthless", "useless", "burden", "ending", "give up", "cant go on", "can't go on",
]
STRESS_WORDS = [
    "overwhelmed", "anxious", "panic", "stress", "worried", "scared",
    "pressure", "exhausted", "burnout", "breakdown",
]

CRITICAL_LANGUAGE = "Critical language detected"
STRESS_LANGUAGE = "Stress language detected"


def _word_pattern(words: List[str], whole_word: bool = True) -> re.Pattern:
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"\b(?:{alternatives})" + (r"\b" if whole_word else ""))


POSITIVE_PATTERN = _word_pattern(POSITIVE_WORDS)
NEGATIVE_PATTERN = _word_pattern(NEGATIVE_WORDS)
RISK_PATTERN = _word_pattern(RISK_WORDS)
STRESS_PATTERN = _word_pattern(STRESS_WORDS, whole_word=False)


def detect_sentiment(text: str) -> str:
    lower_text = (text or "").lower()
    positive = len(set(POSITIVE_PATTERN.findall(lower_text)))
    negative = len(set(NEGATIVE_PATTERN.findall(lower_text)))
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def scan_risk_language(text: str) -> List[str]:
    lower_text = (text or "").lower()
    flags = []
    if RISK_PATTERN.search(lower_text):
        flags.append(CRITICAL_LANGUAGE)
    if STRESS_PATTERN.search(lower_text):
        flags.append(STRESS_LANGUAGE)
    return flags
