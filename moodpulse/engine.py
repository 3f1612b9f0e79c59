"""Mood analytics engine.

Pure computation over a user's mood entries: logging streaks, runs of sad
days, mood stability, trend direction, risk classification, the per-day
pattern table, rule-based recommendations and a statistical next-day
prediction. Nothing here performs I/O or keeps state between calls; entries
are fetched by the caller and passed in.

Entries may be ``MoodEntry`` instances or mappings shaped like the stored
documents (``moodState``, ``timestamp``, ``moodText``, ``sentiment``).
Entries with an unknown mood state or an unparsable timestamp are dropped.
Aware timestamps are converted to the analysis timezone and every date
computation works on local calendar dates.
"""

import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

HAPPY = "Happy"
SAD = "Sad"
STRESSED = "Stressed"
MOOD_STATES = (HAPPY, SAD, STRESSED)

# Ordinal scale shared by every computation. Happy and Sad are the poles.
MOOD_VALUES = {HAPPY: 3, STRESSED: 2, SAD: 1}

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"

TREND_IMPROVING = "improving"
TREND_DECLINING = "declining"
TREND_STABLE = "stable"
INSUFFICIENT_DATA = "insufficient_data"

NO_DATA = "No data"

SAD_SCAN_DAYS = 30
TREND_WINDOW = 7
TREND_THRESHOLD = 0.3
MIN_TREND_ENTRIES = 3
DEFAULT_STABILITY = 0.5
RAPID_CHANGE_HOURS = 24
MAX_RECOMMENDATIONS = 6
MIN_PREDICTION_ENTRIES = 5
PREDICTION_WEIGHTS = (0.4, 0.3, 0.2, 0.1)

TIME_SLOTS = ("morning", "afternoon", "evening", "night")
TIME_SLOT_PATTERNS = {
    "morning": "morning_low",
    "afternoon": "afternoon_peak",
    "evening": "evening_high",
    "night": "night_increase",
}

ONE_DAY = timedelta(days=1)

RISK_RECOMMENDATIONS = {
    RISK_HIGH: [
        "Consider reaching out to a mental health professional immediately",
        "Contact a crisis helpline if you need immediate support",
        "Inform a trusted friend or family member about how you're feeling",
    ],
    RISK_MEDIUM: [
        "Schedule a check-in with a counselor or therapist",
        "Increase self-care activities and stress management techniques",
        "Consider joining a support group or mental health community",
    ],
}

TREND_RECOMMENDATIONS = {
    TREND_DECLINING: [
        "Focus on identifying and addressing recent stressors",
        "Implement daily mindfulness or meditation practices",
        "Ensure you're maintaining healthy sleep and eating habits",
    ],
    TREND_IMPROVING: [
        "Continue with current coping strategies that are working",
        "Document positive activities to repeat them",
        "Consider gradually increasing social activities",
    ],
}

MOOD_RECOMMENDATIONS = {
    STRESSED: [
        "Practice stress-reduction techniques like deep breathing",
        "Evaluate and potentially reduce sources of stress in your environment",
        "Consider time management and organizational strategies",
    ],
}

LOW_STABILITY_THRESHOLD = 0.5
LOW_STABILITY_RECOMMENDATIONS = [
    "Work on establishing consistent daily routines",
    "Track potential mood triggers in your environment",
    "Consider mood stabilization techniques with a professional",
]


@dataclass(frozen=True)
class MoodEntry:
    mood_state: str
    timestamp: datetime
    mood_text: str = ""
    sentiment: Optional[str] = None


@dataclass
class Outcome:
    """A computed value plus the reasons it may be less than complete.

    An empty ``warnings`` list means the value was computed on full data.
    """

    value: Any
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class Streak:
    current: int
    start_date: Optional[date]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "startDate": self.start_date.isoformat() if self.start_date else None,
        }


@dataclass(frozen=True)
class MoodPattern:
    date: date
    mood: str
    frequency: int
    time_of_day: str
    sentiment: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "mood": self.mood,
            "frequency": self.frequency,
            "timeOfDay": self.time_of_day,
            "sentiment": self.sentiment,
        }


@dataclass(frozen=True)
class Insights:
    dominant_mood: str
    mood_stability: float
    risk_level: str
    trend_direction: str
    critical_patterns: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dominantMood": self.dominant_mood,
            "moodStability": self.mood_stability,
            "riskLevel": self.risk_level,
            "trendDirection": self.trend_direction,
            "criticalPatterns": list(self.critical_patterns),
        }


@dataclass(frozen=True)
class AnalysisResult:
    patterns: Tuple[MoodPattern, ...]
    insights: Insights
    recommendations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patterns": [p.to_dict() for p in self.patterns],
            "insights": self.insights.to_dict(),
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class MoodPrediction:
    predicted: str
    confidence: float
    probability_distribution: Dict[str, float]
    weekly_trend: str
    time_of_day_pattern: str
    mood_stability: float
    risk_factors: Tuple[str, ...]
    dominant_emotion_week: str
    mood_volatility: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tomorrowMood": {
                "predicted": self.predicted,
                "confidence": self.confidence,
                "probabilityDistribution": dict(self.probability_distribution),
            },
            "patterns": {
                "weeklyTrend": self.weekly_trend,
                "timeOfDayPattern": self.time_of_day_pattern,
                "moodStability": self.mood_stability,
                "riskFactors": list(self.risk_factors),
            },
            "insights": {
                "dominantEmotionWeek": self.dominant_emotion_week,
                "moodVolatility": self.mood_volatility,
                "recommendation": self.recommendation,
            },
        }


@dataclass(frozen=True)
class UserStats:
    current_streak: int
    longest_streak: int
    total_mood_entries: int
    this_week_entries: int
    week_percentage: int
    streak_start_date: Optional[date]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "totalMoodEntries": self.total_mood_entries,
            "thisWeekEntries": self.this_week_entries,
            "weekPercentage": self.week_percentage,
            "streakStartDate": self.streak_start_date.isoformat() if self.streak_start_date else None,
        }


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _to_local(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone(tz).replace(tzinfo=None)


def coerce_entry(raw: Any, tz: Optional[tzinfo] = None) -> Optional[MoodEntry]:
    if isinstance(raw, MoodEntry):
        mood_state, timestamp, text, sentiment = raw.mood_state, raw.timestamp, raw.mood_text, raw.sentiment
    elif isinstance(raw, Mapping):
        mood_state = raw.get("moodState", raw.get("mood_state"))
        timestamp = raw.get("timestamp")
        text = raw.get("moodText", raw.get("mood_text")) or ""
        sentiment = raw.get("sentiment")
    else:
        return None

    if mood_state not in MOOD_VALUES:
        return None
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return None
    return MoodEntry(
        mood_state=mood_state,
        timestamp=_to_local(parsed, tz),
        mood_text=text if isinstance(text, str) else str(text),
        sentiment=sentiment,
    )


def normalize_entries(entries: Optional[Iterable[Any]], tz: Optional[tzinfo] = None) -> Tuple[List[MoodEntry], int]:
    """Return the well-formed entries sorted oldest first, and how many were dropped."""
    valid = []
    dropped = 0
    for raw in entries or ():
        entry = coerce_entry(raw, tz)
        if entry is None:
            dropped += 1
            continue
        valid.append(entry)
    valid.sort(key=lambda e: e.timestamp)
    if dropped:
        logger.debug(f"Dropped {dropped} malformed mood entries")
    return valid, dropped


def local_today(tz: Optional[tzinfo] = None) -> date:
    return datetime.now(tz).date() if tz is not None else date.today()


def _logged_dates(entries: Sequence[MoodEntry]) -> set:
    return {e.timestamp.date() for e in entries}


def calculate_streak(entries: Iterable[Any], today: Optional[date] = None, tz: Optional[tzinfo] = None) -> Streak:
    """Consecutive logged calendar days ending today, or yesterday if today is empty.

    Several entries on the same day count once. If neither today nor
    yesterday has an entry the streak is broken and ``Streak(0, None)`` is
    returned, even when later days are logged.
    """
    valid, _ = normalize_entries(entries, tz)
    logged = _logged_dates(valid)
    today = today or local_today(tz)

    if today in logged:
        day = today
    elif today - ONE_DAY in logged:
        day = today - ONE_DAY
    else:
        return Streak(0, None)

    current = 0
    start = day
    while day in logged:
        current += 1
        start = day
        day -= ONE_DAY
    return Streak(current, start)


def longest_streak(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> int:
    valid, _ = normalize_entries(entries, tz)
    best = run = 0
    previous = None
    for day in sorted(_logged_dates(valid)):
        run = run + 1 if previous is not None and day - previous == ONE_DAY else 1
        best = max(best, run)
        previous = day
    return best


def consecutive_sad_days(entries: Iterable[Any], today: Optional[date] = None, tz: Optional[tzinfo] = None) -> int:
    """Count the recent run of days whose majority mood was Sad.

    Scans the 30 days ending today, newest first. Days without entries are
    skipped rather than ending the run; the first logged day that is not
    majority-sad ends the scan.
    """
    valid, _ = normalize_entries(entries, tz)
    today = today or local_today(tz)

    by_day = defaultdict(list)
    for entry in valid:
        by_day[entry.timestamp.date()].append(entry.mood_state)

    count = 0
    for offset in range(SAD_SCAN_DAYS):
        moods = by_day.get(today - timedelta(days=offset))
        if not moods:
            continue
        if moods.count(SAD) * 2 > len(moods):
            count += 1
        else:
            break
    return count


def mood_stability(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> float:
    """Share of adjacent entries that kept the same mood, in [0, 1].

    A change between entries less than 24 hours apart weighs 0.5, a slower
    change weighs 1. Fewer than two entries give 0.5.
    """
    valid, _ = normalize_entries(entries, tz)
    if len(valid) < 2:
        return DEFAULT_STABILITY

    changes = 0.0
    for previous, current in zip(valid, valid[1:]):
        if current.mood_state != previous.mood_state:
            hours = (current.timestamp - previous.timestamp).total_seconds() / 3600
            changes += 0.5 if hours < RAPID_CHANGE_HOURS else 1.0
    return round(max(0.0, 1 - changes / (len(valid) - 1)), 2)


def mood_variability(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> float:
    valid, _ = normalize_entries(entries, tz)
    if len(valid) < 2:
        return 0.0
    values = [MOOD_VALUES[e.mood_state] for e in valid]
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return round(math.sqrt(variance), 2)


def dominant_mood(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> str:
    valid, _ = normalize_entries(entries, tz)
    if not valid:
        return NO_DATA
    # Ties go to the mood seen first.
    return Counter(e.mood_state for e in valid).most_common()[0][0]


def _mean_value(entries: Sequence[MoodEntry]) -> float:
    return sum(MOOD_VALUES[e.mood_state] for e in entries) / len(entries)


def trend_direction(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> str:
    valid, _ = normalize_entries(entries, tz)
    if len(valid) < MIN_TREND_ENTRIES:
        return INSUFFICIENT_DATA

    recent = valid[-TREND_WINDOW:]
    older = valid[-2 * TREND_WINDOW:-TREND_WINDOW]
    recent_avg = _mean_value(recent)
    older_avg = _mean_value(older) if older else recent_avg

    if recent_avg > older_avg + TREND_THRESHOLD:
        return TREND_IMPROVING
    if recent_avg < older_avg - TREND_THRESHOLD:
        return TREND_DECLINING
    return TREND_STABLE


def classify_risk(consecutive_sad: int, sad_fraction: float, stressed_fraction: float) -> str:
    if consecutive_sad >= 7 or sad_fraction > 0.7:
        return RISK_HIGH
    if consecutive_sad >= 3 or sad_fraction > 0.4 or stressed_fraction > 0.6:
        return RISK_MEDIUM
    return RISK_LOW


def critical_patterns(consecutive_sad: int, stressed_fraction: float, stability: float, total_entries: int) -> List[str]:
    flags = []
    if consecutive_sad >= 5:
        flags.append(f"{consecutive_sad} consecutive sad days detected")
    if stressed_fraction > 0.5:
        flags.append("High stress frequency detected")
    if stability < 0.3:
        flags.append("High mood volatility detected")
    if total_entries < 7:
        flags.append("Limited data available for comprehensive analysis")
    return flags


def time_of_day(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def dominant_time_of_day(entries: Sequence[MoodEntry]) -> str:
    slots = Counter(time_of_day(e.timestamp.hour) for e in entries)
    best = TIME_SLOTS[0]
    for slot in TIME_SLOTS:
        # later slots win ties
        if slots[slot] >= slots[best]:
            best = slot
    return best


def majority_sentiment(entries: Sequence[MoodEntry]) -> str:
    labels = [e.sentiment or "neutral" for e in entries]
    positive = labels.count("positive")
    negative = labels.count("negative")
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def build_patterns(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> List[MoodPattern]:
    valid, _ = normalize_entries(entries, tz)
    by_day: Dict[date, Dict[str, List[MoodEntry]]] = {}
    for entry in valid:
        by_day.setdefault(entry.timestamp.date(), {}).setdefault(entry.mood_state, []).append(entry)

    patterns = []
    for day, moods in by_day.items():
        for mood, group in moods.items():
            patterns.append(MoodPattern(
                date=day,
                mood=mood,
                frequency=len(group),
                time_of_day=dominant_time_of_day(group),
                sentiment=majority_sentiment(group),
            ))
    return patterns


def generate_recommendations(insights: Insights) -> List[str]:
    recommendations = []
    recommendations.extend(RISK_RECOMMENDATIONS.get(insights.risk_level, []))
    recommendations.extend(TREND_RECOMMENDATIONS.get(insights.trend_direction, []))
    recommendations.extend(MOOD_RECOMMENDATIONS.get(insights.dominant_mood, []))
    if insights.mood_stability < LOW_STABILITY_THRESHOLD:
        recommendations.extend(LOW_STABILITY_RECOMMENDATIONS)
    return recommendations[:MAX_RECOMMENDATIONS]


def generate_insights(entries: Sequence[MoodEntry], today: date) -> Insights:
    if not entries:
        return Insights(
            dominant_mood=NO_DATA,
            mood_stability=DEFAULT_STABILITY,
            risk_level=RISK_LOW,
            trend_direction=INSUFFICIENT_DATA,
            critical_patterns=("Insufficient data for analysis",),
        )

    counts = Counter(e.mood_state for e in entries)
    total = len(entries)
    sad_fraction = counts[SAD] / total
    stressed_fraction = counts[STRESSED] / total
    consecutive_sad = consecutive_sad_days(entries, today=today)
    stability = mood_stability(entries)

    return Insights(
        dominant_mood=dominant_mood(entries),
        mood_stability=stability,
        risk_level=classify_risk(consecutive_sad, sad_fraction, stressed_fraction),
        trend_direction=trend_direction(entries),
        critical_patterns=tuple(critical_patterns(consecutive_sad, stressed_fraction, stability, total)),
    )


def analyze(
    entries: Iterable[Any],
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
    include_patterns: bool = True,
    include_recommendations: bool = True,
) -> Outcome:
    """Run the full analysis and return ``Outcome(AnalysisResult, warnings)``.

    The result depends only on the entries and ``today``; calling twice with
    the same input gives an identical result.
    """
    valid, dropped = normalize_entries(entries, tz)
    today = today or local_today(tz)

    warnings = []
    if dropped:
        warnings.append(f"Dropped {dropped} malformed mood entries")
    if not valid:
        warnings.append("No mood entries available for analysis")
    elif len(valid) < MIN_TREND_ENTRIES:
        warnings.append(f"At least {MIN_TREND_ENTRIES} entries are needed to determine a trend")

    insights = generate_insights(valid, today)
    patterns = tuple(build_patterns(valid)) if include_patterns else ()
    recommendations = tuple(generate_recommendations(insights)) if include_recommendations else ()

    logger.debug(
        f"Analyzed {len(valid)} entries: risk={insights.risk_level}, "
        f"trend={insights.trend_direction}, stability={insights.mood_stability}"
    )
    return Outcome(AnalysisResult(patterns, insights, recommendations), warnings)


def with_dominant_mood(result: AnalysisResult, mood: str, include_recommendations: bool = True) -> AnalysisResult:
    """Copy of ``result`` with another dominant mood and recommendations re-derived."""
    insights = replace(result.insights, dominant_mood=mood)
    recommendations = tuple(generate_recommendations(insights)) if include_recommendations else ()
    return replace(result, insights=insights, recommendations=recommendations)


def fallback_prediction() -> MoodPrediction:
    return MoodPrediction(
        predicted=HAPPY,
        confidence=0.5,
        probability_distribution={HAPPY: 0.4, SAD: 0.3, STRESSED: 0.3},
        weekly_trend=INSUFFICIENT_DATA,
        time_of_day_pattern="need_more_entries",
        mood_stability=DEFAULT_STABILITY,
        risk_factors=("Limited historical data",),
        dominant_emotion_week="Unknown",
        mood_volatility=RISK_MEDIUM,
        recommendation="Continue logging moods regularly.",
    )


def _band(stability: float, high: str, middle: str, low: str) -> str:
    if stability > 0.7:
        return high
    if stability > 0.4:
        return middle
    return low


def predict_next_mood(entries: Iterable[Any], tz: Optional[tzinfo] = None) -> Outcome:
    valid, dropped = normalize_entries(entries, tz)
    warnings = [f"Dropped {dropped} malformed mood entries"] if dropped else []
    if len(valid) < MIN_PREDICTION_ENTRIES:
        warnings.append(f"At least {MIN_PREDICTION_ENTRIES} entries are needed for a prediction")
        return Outcome(fallback_prediction(), warnings)

    recent = list(reversed(valid))[:len(PREDICTION_WEIGHTS)]
    weighted = sum(MOOD_VALUES[e.mood_state] * w for e, w in zip(recent, PREDICTION_WEIGHTS))
    avg = weighted / sum(PREDICTION_WEIGHTS[:len(recent)])

    if avg >= 2.5:
        predicted = HAPPY
    elif avg >= 1.5:
        predicted = STRESSED
    else:
        predicted = SAD
    confidence = round(min(0.9, max(0.5, abs(avg - math.floor(avg + 0.5)) * 2 + 0.1)), 2)

    counts = Counter(e.mood_state for e in valid)
    total = len(valid)
    stability = mood_stability(valid)
    volatile = stability < 0.4

    prediction = MoodPrediction(
        predicted=predicted,
        confidence=confidence,
        probability_distribution={state: round(counts[state] / total, 2) for state in MOOD_STATES},
        weekly_trend=_band(stability, "stable", "variable", "volatile"),
        time_of_day_pattern=TIME_SLOT_PATTERNS[dominant_time_of_day(valid)],
        mood_stability=stability,
        risk_factors=("High mood volatility",) if volatile else (),
        dominant_emotion_week=dominant_mood(valid),
        mood_volatility=_band(stability, RISK_LOW, RISK_MEDIUM, RISK_HIGH),
        recommendation=(
            "Consider consulting a professional due to mood swings."
            if volatile else "Maintain current mood tracking."
        ),
    )
    return Outcome(prediction, warnings)


def week_start(today: date) -> date:
    # Weeks start on Sunday.
    return today - timedelta(days=(today.weekday() + 1) % 7)


def summarize_logging(
    entries: Iterable[Any],
    stored_longest: int = 0,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> UserStats:
    valid, _ = normalize_entries(entries, tz)
    today = today or local_today(tz)

    streak = calculate_streak(valid, today=today)
    start = week_start(today)
    end = start + timedelta(days=7)
    this_week = sum(1 for e in valid if start <= e.timestamp.date() < end)

    return UserStats(
        current_streak=streak.current,
        longest_streak=max(stored_longest or 0, streak.current, longest_streak(valid)),
        total_mood_entries=len(valid),
        this_week_entries=this_week,
        week_percentage=int(this_week / 7 * 100 + 0.5),
        streak_start_date=streak.start_date,
    )
