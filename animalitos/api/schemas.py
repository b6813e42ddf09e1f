from pydantic import BaseModel, Field
from typing import Optional


class DrawOut(BaseModel):
    numeric_code: int
    display_name: str
    color_category: str
    time_label: str
    occurred_at: Optional[str] = None


class LastResultOut(DrawOut):
    number_hit: Optional[bool] = None
    color_hit: Optional[bool] = None


class CandidateOut(BaseModel):
    numeric_code: int
    display_name: str
    color_category: str
    score: float
    frequency: int
    last_seen: int
    percentage: float
    probability: float
    confidence: float


class ColorOut(BaseModel):
    color_category: str
    probability_percent: int
    rationale: str
    streak_length: int = 0
    alternation_rate: Optional[float] = None


class PredictionOut(BaseModel):
    status: str
    batch_id: Optional[str] = None
    issued_at: Optional[str] = None
    candidate_set: list[CandidateOut] = []
    predicted_color: Optional[ColorOut] = None
    source_result_count: int = 0


class AccuracyDetailOut(BaseModel):
    draw: DrawOut
    predicted_codes: list[int]
    predicted_color: Optional[str]
    number_hit: bool
    color_hit: bool


class AccuracyOut(BaseModel):
    status: str
    number_accuracy_percent: float
    color_accuracy_percent: float
    combined_accuracy_percent: float
    sample_size: int
    number_hits: int
    color_hits: int
    total_predictions: int
    details: list[AccuracyDetailOut]


class PeriodStatsOut(BaseModel):
    total: int
    number_accuracy: float
    color_accuracy: float


class TopPredictedOut(BaseModel):
    numeric_code: int
    display_name: str
    count: int
    hits: int


class StatsOut(BaseModel):
    total_predictions: int
    number_accuracy_percent: float
    color_accuracy_percent: float
    combined_accuracy_percent: float
    last_7_days: PeriodStatsOut
    last_30_days: PeriodStatsOut
    last_100: PeriodStatsOut
    top_predicted: list[TopPredictedOut]


class HistoryItem(BaseModel):
    batch_id: str
    issued_at: str
    candidate_codes: list[int]
    predicted_color: str
    actual_result: DrawOut
    number_hit: bool
    color_hit: bool
    winning_candidate: Optional[dict] = None


class HistoryOut(BaseModel):
    items: list[HistoryItem]


class RecentAppearance(BaseModel):
    time_label: str
    gap_minutes: int


class AnimalHistoryOut(BaseModel):
    numeric_code: int
    display_name: str
    color_category: str
    all_appearances: list[DrawOut]
    recent_appearances: list[RecentAppearance]
    last100_appearances: int
    hour_pattern: list[int] = Field(min_length=24, max_length=24)


class TemperatureItem(BaseModel):
    numeric_code: int
    display_name: str
    color_category: str
    frequency: int
    percentage: float
    last_seen: int


class TemperatureOut(BaseModel):
    hot: list[TemperatureItem]
    warm: list[TemperatureItem]
    cold: list[TemperatureItem]
    hot_threshold: float
    warm_threshold: float
    scaled: bool


class ForceUpdateOut(BaseModel):
    ok: bool
    inserted: int = 0
    new_draws: int = 0
    resolved: bool = False
    error: Optional[str] = None


class MessageIn(BaseModel):
    text: str = Field(min_length=1)


class SendOut(BaseModel):
    ok: bool
    delivered: int
    message: Optional[str] = None


class StoreStatsOut(BaseModel):
    total_results: int
    last_update: Optional[str] = None
    unique_animals: int
