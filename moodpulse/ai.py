import json
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import tzinfo
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

import google.generativeai as genai

from config import GEMINI_API_KEY, GEMINI_MODEL, AI_REQUEST_TIMEOUT, AI_OVERRIDE_CONFIDENCE
from .engine import HAPPY, SAD, STRESSED, AnalysisResult, MoodEntry, Outcome, normalize_entries, with_dominant_mood
from .resilience import intelligent_retry, RetryConfig, CircuitBreaker, AIServiceError, classify_error

logger = logging.getLogger(__name__)

retry_config = RetryConfig()
gemini_circuit_breaker = CircuitBreaker()

CLASSIFY_WINDOW = 7
MAX_TEXT_LENGTH = 200

EMOTION_TO_MOOD = {
    "joy": HAPPY,
    "happy": HAPPY,
    "sadness": SAD,
    "sad": SAD,
}


@intelligent_retry(config=retry_config, circuit_breaker=gemini_circuit_breaker, error_class=AIServiceError)
def _call_gemini_api(prompt_text: str, model_name: str = GEMINI_MODEL) -> str:
    if not GEMINI_API_KEY:
        raise AIServiceError(
            "AI service not configured. Missing API key.",
            error_type="configuration",
            is_retryable=False
        )

    try:
        logger.debug(f"Calling Gemini API with model: {model_name}")
        model_instance = genai.GenerativeModel(model_name)
        response = model_instance.generate_content(
            prompt_text,
            generation_config=genai.types.GenerationConfig(
                temperature=0.2,
                max_output_tokens=256,
                response_mime_type="application/json",
            )
        )
    except Exception as e:
        error_type, is_retryable = classify_error(e)
        raise AIServiceError(f"Gemini request failed: {str(e)}", error_type=error_type, is_retryable=is_retryable) from e

    if not response.parts:
        if response.prompt_feedback and response.prompt_feedback.block_reason:
            raise AIServiceError(
                f"Content generation blocked by Gemini: {response.prompt_feedback.block_reason}",
                error_type="content_filtered",
                is_retryable=False
            )
        raise AIServiceError(
            "AI model did not return content - response parts empty",
            error_type="empty_response",
            is_retryable=True
        )

    generated_text = response.text
    if not generated_text or not generated_text.strip():
        raise AIServiceError("AI model returned empty text content", error_type="empty_content", is_retryable=True)
    return generated_text


def build_classification_prompt(entries: Sequence[MoodEntry]) -> str:
    lines = [f'{e.mood_state}: "{e.mood_text[:MAX_TEXT_LENGTH]}"' for e in entries]
    return (
        "You classify the emotional tone of mood journal entries.\n"
        "Entries (mood label: text), newest first:\n"
        + "\n".join(lines)
        + "\n\nReply with JSON only, shaped as "
        '{"emotion": "<joy|sadness|anger|fear|surprise|disgust|neutral>", "confidence": <number between 0 and 1>} '
        "describing the dominant emotion across all entries."
    )


def parse_classification(text: str) -> Tuple[str, float]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Classification was not valid JSON: {text[:100]}", error_type="malformed_output",
                             is_retryable=False) from e

    if isinstance(payload, list) and payload:
        payload = payload[0]
    if not isinstance(payload, dict):
        raise AIServiceError("Classification JSON has an unexpected shape", error_type="malformed_output",
                             is_retryable=False)

    emotion = str(payload.get("emotion") or payload.get("label") or "neutral").lower()
    try:
        confidence = float(payload.get("confidence", payload.get("score", 0.0)))
    except (TypeError, ValueError):
        confidence = 0.0
    return emotion, max(0.0, min(1.0, confidence))


def classify_recent_moods(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> Tuple[str, float]:
    """Ask Gemini for the dominant mood of the latest entries.

    Returns ``(mood, confidence)`` with the emotion mapped onto the three mood
    states. Raises ``AIServiceError`` when the call or its output fails.
    """
    valid, _ = normalize_entries(entries, tz)
    recent = list(reversed(valid))[:CLASSIFY_WINDOW]
    if not recent:
        raise AIServiceError("No entries to classify", error_type="insufficient_data", is_retryable=False)

    emotion, confidence = parse_classification(_call_gemini_api(build_classification_prompt(recent)))
    mood = EMOTION_TO_MOOD.get(emotion, STRESSED)
    logger.info(f"Gemini classified recent moods as {emotion} ({mood}) with confidence {confidence:.2f}")
    return mood, confidence


def enrich_analysis(
    result: AnalysisResult,
    entries: Iterable[Any],
    timeout: float = AI_REQUEST_TIMEOUT,
    threshold: float = AI_OVERRIDE_CONFIDENCE,
    include_recommendations: bool = True,
    classifier: Optional[Callable[[Iterable[Any]], Tuple[str, float]]] = None,
    tz: Optional[tzinfo] = None,
) -> Outcome:
    """Layer the AI classification over a finished statistical analysis.

    The dominant mood is replaced only when the model's confidence is above
    ``threshold``. A failure or a call running past ``timeout`` seconds
    leaves the statistical result untouched and adds a warning. Entries are
    put on the ``tz`` clock before the classifier sees them.
    """
    classifier = classifier or classify_recent_moods
    entries, _ = normalize_entries(entries, tz)
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(classifier, entries)
        mood, confidence = future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning(f"AI enrichment timed out after {timeout}s, keeping statistical analysis")
        return Outcome(result, ["AI enrichment timed out; statistical analysis only"])
    except AIServiceError as e:
        logger.warning(f"AI enrichment unavailable: {e.error_type} - {str(e)}")
        return Outcome(result, [f"AI enrichment unavailable ({e.error_type}); statistical analysis only"])
    except Exception as e:
        logger.error(f"Unexpected error during AI enrichment: {str(e)}", exc_info=True)
        return Outcome(result, ["AI enrichment failed; statistical analysis only"])
    finally:
        executor.shutdown(wait=False)

    if confidence <= threshold:
        logger.info(f"AI confidence {confidence:.2f} below override threshold {threshold}, keeping {result.insights.dominant_mood}")
        return Outcome(result, [])
    if mood == result.insights.dominant_mood:
        return Outcome(result, [])

    logger.info(f"Overriding dominant mood {result.insights.dominant_mood} -> {mood} (confidence {confidence:.2f})")
    return Outcome(with_dominant_mood(result, mood, include_recommendations), [])
