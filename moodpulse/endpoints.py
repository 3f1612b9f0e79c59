import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query

from config import ANALYTICS_TIMEZONE, AUTOMATION_WEBHOOK_URL, GEMINI_API_KEY
from . import engine
from .ai import enrich_analysis
from .automation import AutomationTrigger, build_payload
from .heuristics import detect_sentiment, scan_risk_language
from .models import *
from .repository import MoodRepository, RepositoryError, get_repository

logger = logging.getLogger(__name__)

router = APIRouter()

RAW_MOODS_LIMIT = 50
HISTORY_LIMIT = 5
PREDICTION_DAYS = 7
PREDICTION_LIMIT = 20


def analysis_timezone():
    return ZoneInfo(ANALYTICS_TIMEZONE) if ANALYTICS_TIMEZONE else None


def get_automation_trigger() -> AutomationTrigger:
    return AutomationTrigger()


def _require_user_id(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    return user_id


def _store_mood(data: MoodLogRequest, repository: MoodRepository):
    tz = analysis_timezone()
    timestamp = data.timestamp or (datetime.now(tz) if tz else datetime.now().astimezone())
    sentiment = data.sentiment or detect_sentiment(data.mood_text)
    document = repository.add_entry(data.user_id, {
        "moodText": data.mood_text,
        "moodState": data.mood_state,
        "timestamp": timestamp.isoformat(),
        "sentiment": sentiment,
    })
    return document, sentiment


@router.get('/', tags=["Health"])
def read_root():
    return {
        "message": "Welcome to the MoodPulse Analytics Service!",
        "version": "1.0.0",
        "framework": "FastAPI",
        "documentation": {
            "interactive_docs": "/docs",
            "openapi_schema": "/openapi.json",
            "health_check": "/health"
        },
        "endpoints": {
            "log_mood": "/moods",
            "raw_moods": "/moods/raw",
            "trigger": "/moods/trigger",
            "mood_pattern": "/analytics/mood-pattern",
            "user_stats": "/user-stats",
            "predictions": "/predictions/mood"
        }
    }


@router.get('/health', tags=["Health"])
def health_check():
    return {
        "status": "healthy",
        "service": "MoodPulse Analytics Service",
        "version": "1.0.0",
        "gemini_configured": bool(GEMINI_API_KEY),
        "automation_configured": bool(AUTOMATION_WEBHOOK_URL),
        "timestamp": datetime.now().isoformat()
    }


@router.post('/moods', response_model=MoodLogResponse, tags=["Moods"])
def log_mood(data: MoodLogRequest, repository: MoodRepository = Depends(get_repository)):
    logger.info(f"Logging {data.mood_state} mood for user {data.user_id}")
    document, sentiment = _store_mood(data, repository)
    risk_flags = scan_risk_language(data.mood_text)
    if risk_flags:
        logger.warning(f"Risk language flagged for user {data.user_id}: {risk_flags}")

    return {
        "message": "Mood saved successfully",
        "sentiment": sentiment,
        "riskFlags": risk_flags,
        "entry": document,
    }


@router.get('/moods/raw', tags=["Moods"])
def get_raw_moods(user_id: Optional[str] = Query(None, alias="userId"),
                  limit: int = Query(RAW_MOODS_LIMIT, ge=1, le=500),
                  repository: MoodRepository = Depends(get_repository)):
    user_id = _require_user_id(user_id)
    return repository.fetch_entries(user_id, limit=limit, newest_first=True)


@router.post('/moods/trigger', response_model=MoodTriggerResponse, tags=["Moods"])
def log_mood_and_trigger(data: MoodTriggerRequest, repository: MoodRepository = Depends(get_repository),
                         trigger: AutomationTrigger = Depends(get_automation_trigger)):
    logger.info(f"Logging mood with automation trigger for user {data.user_id}")
    document, _ = _store_mood(data, repository)

    tz = analysis_timezone()
    since = datetime.now(tz) - timedelta(days=engine.SAD_SCAN_DAYS)
    recent = repository.fetch_entries(data.user_id, since=since)
    payload = build_payload(data.user_id, document, recent, today=engine.local_today(tz), tz=tz)
    payload["userEmail"] = data.user_email
    payload["userName"] = data.user_name or f"User {data.user_id[:8]}"

    result = trigger.trigger(payload)
    status = result["status"]
    if status == "success":
        message = "Mood logged and automation triggered successfully"
    elif status == "disabled":
        message = "Mood logged successfully (automation not configured)"
    else:
        message = "Mood logged successfully (automation service temporarily unavailable)"

    return {
        "message": message,
        "automationStatus": status,
        "automation": result,
        "analytics": {
            "consecutiveSadDays": payload["consecutiveSadDays"],
            "moodTrend": payload["moodTrend"],
            "riskFactors": payload["riskFactors"],
        },
    }


@router.post('/analytics/mood-pattern', response_model=MoodPatternResponse, tags=["Analytics"])
def analyze_mood_pattern(data: MoodPatternRequest, repository: MoodRepository = Depends(get_repository)):
    logger.info(f"Analyzing mood patterns for user: {data.user_id}, timeRange: {data.time_range} days")
    tz = analysis_timezone()
    since = datetime.now(tz) - timedelta(days=data.time_range)
    documents = repository.fetch_entries(data.user_id, since=since)

    outcome = engine.analyze(
        documents,
        tz=tz,
        include_patterns=data.analysis_type != 'basic',
        include_recommendations=data.include_recommendations,
    )
    result, warnings = outcome.value, list(outcome.warnings)

    enriched = False
    if data.analysis_type == 'ai_enhanced':
        if documents:
            enrichment = enrich_analysis(result, documents, include_recommendations=data.include_recommendations,
                                         tz=tz)
            enriched = enrichment.value is not result
            result = enrichment.value
            warnings.extend(enrichment.warnings)
        else:
            warnings.append("AI enrichment skipped: no mood entries")

    analysis = {
        "userId": data.user_id,
        "timeRange": data.time_range,
        "analysisType": data.analysis_type,
        **result.to_dict(),
        "enriched": enriched,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }
    if not data.include_recommendations:
        analysis["recommendations"] = None

    try:
        repository.save_analysis(data.user_id, analysis)
    except RepositoryError as e:
        logger.error(f"Error saving analysis results: {str(e)}")
        warnings.append("Analysis snapshot could not be saved")

    logger.info(
        f"Pattern analysis completed: user={data.user_id}, patterns={len(result.patterns)}, "
        f"risk={result.insights.risk_level}, dominant={result.insights.dominant_mood}"
    )
    return {
        "analysis": analysis,
        "warnings": warnings,
        "message": "Mood pattern analysis completed successfully",
    }


@router.get('/analytics/mood-pattern', response_model=AnalysisHistoryResponse, tags=["Analytics"])
def list_mood_pattern_analyses(user_id: Optional[str] = Query(None, alias="userId"),
                               limit: int = Query(HISTORY_LIMIT, ge=1, le=100),
                               repository: MoodRepository = Depends(get_repository)):
    user_id = _require_user_id(user_id)
    analyses = repository.list_analyses(user_id, limit=limit)
    return {"analyses": analyses, "count": len(analyses)}


@router.get('/user-stats', response_model=UserStatsResponse, tags=["Analytics"])
def get_user_stats(user_id: Optional[str] = Query(None, alias="userId"),
                   repository: MoodRepository = Depends(get_repository)):
    user_id = _require_user_id(user_id)
    stored = repository.get_stats(user_id) or {}
    documents = repository.fetch_entries(user_id)

    stats = engine.summarize_logging(documents, stored_longest=stored.get("longestStreak", 0),
                                     tz=analysis_timezone())
    body = stats.to_dict()
    repository.save_stats(user_id, dict(body, updatedAt=datetime.now().isoformat()))
    return body


@router.post('/predictions/mood', response_model=PredictionResponse, tags=["Analytics"])
def predict_mood(data: PredictionRequest, repository: MoodRepository = Depends(get_repository)):
    logger.info(f"Predicting mood for user {data.user_id}")
    tz = analysis_timezone()
    since = datetime.now(tz) - timedelta(days=PREDICTION_DAYS)
    documents = repository.fetch_entries(data.user_id, since=since, limit=PREDICTION_LIMIT, newest_first=True)

    outcome = engine.predict_next_mood(documents, tz=tz)
    return {
        "prediction": outcome.value.to_dict(),
        "warnings": outcome.warnings,
        "metadata": {
            "analyzedEntries": len(documents),
            "predictionDate": datetime.now().isoformat(),
            "model": "statistical",
        },
    }
