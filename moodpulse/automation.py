import logging
import uuid
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, List, Optional

import requests

from config import AUTOMATION_WEBHOOK_URL, AUTOMATION_TIMEOUT
from . import engine
from .resilience import intelligent_retry, RetryConfig, AutomationError

logger = logging.getLogger(__name__)

USER_AGENT = "MoodPulse/1.0"
HISTORY_DAYS = 7


def build_risk_factors(recent: List[engine.MoodEntry], history: List[engine.MoodEntry],
                       today: date) -> Dict[str, Any]:
    last_happy = next((e for e in reversed(history) if e.mood_state == engine.HAPPY), None)
    return {
        "consecutiveSadDays": engine.consecutive_sad_days(recent, today=today),
        "hasStressPattern": sum(1 for e in history if e.mood_state == engine.STRESSED) >= 3,
        "moodVariability": engine.mood_variability(history),
        "lastHappyMood": last_happy.timestamp.isoformat() if last_happy else None,
    }


def build_payload(user_id: str, entry: Dict[str, Any], recent_docs: List[Dict[str, Any]],
                  today: Optional[date] = None, history_days: int = HISTORY_DAYS,
                  tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """Webhook body for a logged mood.

    ``recent_docs`` should cover the sad-day scan window; the history and
    most risk factors only look at the last ``history_days`` days of it.
    """
    recent, _ = engine.normalize_entries(recent_docs, tz)
    today = today or engine.local_today(tz)
    cutoff = today - timedelta(days=history_days)
    history = [e for e in recent if e.timestamp.date() >= cutoff]
    risk_factors = build_risk_factors(recent, history, today)
    return {
        "userId": user_id,
        "moodText": entry.get("moodText", ""),
        "moodState": entry.get("moodState"),
        "sentiment": entry.get("sentiment"),
        "timestamp": entry.get("timestamp"),
        "consecutiveSadDays": risk_factors["consecutiveSadDays"],
        "moodHistory": [
            {"moodState": e.mood_state, "timestamp": e.timestamp.isoformat()} for e in reversed(history)
        ],
        "riskFactors": risk_factors,
        "moodTrend": engine.trend_direction(history),
        "serverTimestamp": datetime.now().isoformat(),
    }


class AutomationTrigger:
    def __init__(self, webhook_url: Optional[str] = None, timeout: float = AUTOMATION_TIMEOUT,
                 retry_config: Optional[RetryConfig] = None, session: Optional[requests.Session] = None):
        self.webhook_url = webhook_url if webhook_url is not None else AUTOMATION_WEBHOOK_URL
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__ + '.AutomationTrigger')
        self._post = intelligent_retry(config=retry_config or RetryConfig(max_retries=2),
                                       error_class=AutomationError)(self._post_once)

    def _post_once(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(
                self.webhook_url,
                json=payload,
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT, "X-Request-ID": f"mp-{uuid.uuid4().hex[:12]}"},
            )
        except requests.Timeout as e:
            raise AutomationError(f"Webhook timed out: {str(e)}", error_type="timeout", is_retryable=True) from e
        except requests.RequestException as e:
            raise AutomationError(f"Network error calling webhook: {str(e)}", error_type="network",
                                  is_retryable=True) from e

        if response.status_code >= 500:
            raise AutomationError(f"Webhook failed with status {response.status_code}", error_type="http_error",
                                  is_retryable=True)
        if response.status_code >= 400:
            raise AutomationError(f"Webhook rejected request with status {response.status_code}: "
                                  f"{response.text[:200]}", error_type="http_error", is_retryable=False)

        if not response.text.strip():
            return {"status": "workflow_executed"}
        try:
            return response.json()
        except ValueError:
            self.logger.warning("Webhook response was not JSON")
            return {"status": "parse_error"}

    def trigger(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send ``payload`` to the webhook; never raises.

        Returns a status dict: ``success`` with the webhook's response, or
        ``failed``/``disabled`` with the reason.
        """
        if not self.webhook_url:
            self.logger.info("Automation webhook not configured, skipping trigger")
            return {"status": "disabled"}

        self.logger.debug(f"Triggering automation at {self.webhook_url}")
        try:
            result = self._post(payload)
        except AutomationError as e:
            self.logger.error(f"Automation trigger failed: {e.error_type} - {str(e)}")
            return {"status": "failed", "errorType": e.error_type, "error": str(e)[:200]}

        self.logger.info("Automation workflow triggered successfully")
        return {"status": "success", "response": result if isinstance(result, dict) else {"body": result}}
