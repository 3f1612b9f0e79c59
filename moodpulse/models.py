from datetime import datetime
from typing import List, Optional, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MoodState = Literal['Happy', 'Sad', 'Stressed']
AnalysisType = Literal['basic', 'detailed', 'ai_enhanced']


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MoodLogRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    mood_text: str = Field(..., min_length=1)
    mood_state: MoodState
    timestamp: Optional[datetime] = None
    sentiment: Optional[Literal['positive', 'negative', 'neutral']] = None


class MoodTriggerRequest(MoodLogRequest):
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class MoodPatternRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    time_range: int = Field(30, ge=1, le=365)
    analysis_type: AnalysisType = 'detailed'
    include_recommendations: bool = True


class PredictionRequest(CamelModel):
    user_id: str = Field(..., min_length=1)


# Response Models
class MoodLogResponse(CamelModel):
    success: bool = True
    message: str
    sentiment: str
    risk_flags: List[str] = []
    entry: Dict[str, Any]


class MoodTriggerResponse(CamelModel):
    success: bool = True
    message: str
    automation_status: str
    automation: Dict[str, Any] = {}
    analytics: Dict[str, Any] = {}


class MoodPatternModel(CamelModel):
    date: str
    mood: str
    frequency: int
    time_of_day: str
    sentiment: str


class InsightsModel(CamelModel):
    dominant_mood: str
    mood_stability: float
    risk_level: Literal['low', 'medium', 'high']
    trend_direction: Literal['improving', 'declining', 'stable', 'insufficient_data']
    critical_patterns: List[str] = []


class AnalysisModel(CamelModel):
    user_id: str
    time_range: int
    analysis_type: AnalysisType
    patterns: List[MoodPatternModel] = []
    insights: InsightsModel
    recommendations: Optional[List[str]] = None
    enriched: bool = False
    generated_at: str


class MoodPatternResponse(CamelModel):
    success: bool = True
    analysis: AnalysisModel
    warnings: List[str] = []
    message: str


class AnalysisHistoryResponse(CamelModel):
    success: bool = True
    analyses: List[AnalysisModel]
    count: int


class UserStatsResponse(CamelModel):
    current_streak: int
    longest_streak: int
    total_mood_entries: int
    this_week_entries: int
    week_percentage: int
    streak_start_date: Optional[str] = None


class PredictionResponse(CamelModel):
    success: bool = True
    prediction: Dict[str, Any]
    warnings: List[str] = []
    metadata: Dict[str, Any] = {}
