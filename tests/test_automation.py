import json
from datetime import date, datetime, timedelta, timezone

import requests

from moodpulse import engine
from moodpulse.automation import AutomationTrigger, build_payload
from moodpulse.resilience import RetryConfig

TODAY = date(2024, 3, 15)
NO_DELAY = RetryConfig(max_retries=2, base_delay=0, max_delay=0, jitter_max=0)


def doc(mood, days_ago, hour=12):
    timestamp = datetime(2024, 3, 15, hour) - timedelta(days=days_ago)
    return {"moodState": mood, "timestamp": timestamp.isoformat(), "moodText": "note"}


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeSession:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def post(self, url, json=None, timeout=None, headers=None):
        self.requests.append({"url": url, "json": json, "timeout": timeout, "headers": headers})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_payload_carries_analytics_context():
    recent = [doc("Sad", 0), doc("Sad", 1), doc("Sad", 2), doc("Happy", 10)]
    entry = {"moodText": "rough day", "moodState": "Sad", "sentiment": "negative", "timestamp": "2024-03-15T12:00:00"}

    payload = build_payload("user-1", entry, recent, today=TODAY)

    assert payload["userId"] == "user-1"
    assert payload["moodState"] == "Sad"
    assert payload["consecutiveSadDays"] == 3
    assert payload["riskFactors"] == {
        "consecutiveSadDays": 3,
        "hasStressPattern": False,
        "moodVariability": 0.0,
        "lastHappyMood": None,
    }
    assert payload["moodTrend"] == "stable"
    assert [m["timestamp"][:10] for m in payload["moodHistory"]] == ["2024-03-15", "2024-03-14", "2024-03-13"]


def test_payload_detects_stress_pattern():
    recent = [doc("Stressed", i) for i in range(3)] + [doc("Happy", 4)]
    payload = build_payload("user-1", {"moodState": "Stressed"}, recent, today=TODAY)

    assert payload["riskFactors"]["hasStressPattern"] is True
    assert payload["riskFactors"]["lastHappyMood"] == "2024-03-11T12:00:00"


def test_trigger_posts_payload():
    session = FakeSession(FakeResponse(200, '{"recommendations": ["rest"], "supportSent": true}'))
    trigger = AutomationTrigger(webhook_url="http://hooks.test/mood", session=session, retry_config=NO_DELAY)

    result = trigger.trigger({"userId": "user-1"})

    assert result == {"status": "success", "response": {"recommendations": ["rest"], "supportSent": True}}
    assert session.requests[0]["url"] == "http://hooks.test/mood"
    assert session.requests[0]["json"] == {"userId": "user-1"}
    assert session.requests[0]["timeout"] == 10
    assert session.requests[0]["headers"]["X-Request-ID"].startswith("mp-")


def test_trigger_handles_empty_body():
    trigger = AutomationTrigger(webhook_url="http://hooks.test/mood", session=FakeSession(FakeResponse(200, " ")),
                                retry_config=NO_DELAY)
    assert trigger.trigger({})["response"] == {"status": "workflow_executed"}


def test_trigger_retries_server_errors():
    session = FakeSession(FakeResponse(502, "bad gateway"), FakeResponse(503, ""), FakeResponse(200, "{}"))
    trigger = AutomationTrigger(webhook_url="http://hooks.test/mood", session=session, retry_config=NO_DELAY)

    assert trigger.trigger({})["status"] == "success"
    assert len(session.requests) == 3


def test_trigger_does_not_retry_client_errors():
    session = FakeSession(FakeResponse(404, "no such webhook"))
    trigger = AutomationTrigger(webhook_url="http://hooks.test/mood", session=session, retry_config=NO_DELAY)

    result = trigger.trigger({})

    assert result["status"] == "failed"
    assert result["errorType"] == "http_error"
    assert len(session.requests) == 1


def test_trigger_reports_network_failure():
    session = FakeSession(requests.ConnectionError("refused"))
    trigger = AutomationTrigger(webhook_url="http://hooks.test/mood", session=session, retry_config=NO_DELAY)

    result = trigger.trigger({})

    assert result["status"] == "failed"
    assert result["errorType"] == "network"
    assert len(session.requests) == NO_DELAY.max_retries + 1


def test_trigger_disabled_without_url():
    session = FakeSession(FakeResponse(200, "{}"))
    assert AutomationTrigger(webhook_url="", session=session).trigger({}) == {"status": "disabled"}
    assert session.requests == []


def test_payload_buckets_days_in_analysis_timezone():
    kiritimati = timezone(timedelta(hours=14))
    recent = [
        {"moodState": "Happy", "timestamp": "2024-03-14T20:00:00+14:00"},
        {"moodState": "Sad", "timestamp": "2024-03-15T01:00:00+14:00"},
    ]

    payload = build_payload("user-1", {"moodState": "Sad"}, recent, today=TODAY, tz=kiritimati)

    assert payload["consecutiveSadDays"] == 1
    assert payload["consecutiveSadDays"] == engine.consecutive_sad_days(recent, today=TODAY, tz=kiritimati)
    assert [m["timestamp"] for m in payload["moodHistory"]] == ["2024-03-15T01:00:00", "2024-03-14T20:00:00"]
