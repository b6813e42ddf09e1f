from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from animalitos.core.registry import get_animal


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _parse_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


@dataclass(frozen=True)
class DrawRecord:
    numeric_code: int
    display_name: str
    color_category: str
    time_label: str
    occurred_at: datetime

    @classmethod
    def build(cls, numeric_code: int, time_label: str, occurred_at: datetime,
              display_name: str | None = None) -> "DrawRecord":
        animal = get_animal(numeric_code)
        return cls(numeric_code, display_name or animal.name, animal.color, time_label, occurred_at)

    @property
    def identity(self) -> tuple[str, int, str]:
        return (self.time_label, self.numeric_code, self.display_name)

    @property
    def match_key(self) -> tuple[int, str]:
        return (self.numeric_code, self.time_label)

    def to_dict(self) -> dict:
        return {
            'numeric_code': self.numeric_code,
            'display_name': self.display_name,
            'color_category': self.color_category,
            'time_label': self.time_label,
            'occurred_at': _iso(self.occurred_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DrawRecord":
        return cls(
            numeric_code=int(d['numeric_code']),
            display_name=d['display_name'],
            color_category=d['color_category'],
            time_label=d['time_label'],
            occurred_at=_parse_dt(d['occurred_at']),
        )


@dataclass(frozen=True)
class Candidate:
    numeric_code: int
    display_name: str
    color_category: str
    score: float
    frequency: int = 0
    last_seen: int = 0
    percentage: float = 0.0

    @property
    def confidence(self) -> float:
        return max(0.0, min(100.0, (self.score + 200) / 4))

    @property
    def probability(self) -> float:
        return max(5.0, min(95.0, (self.score + 200) / 8))

    def to_dict(self) -> dict:
        return {
            'numeric_code': self.numeric_code,
            'display_name': self.display_name,
            'color_category': self.color_category,
            'score': self.score,
            'frequency': self.frequency,
            'last_seen': self.last_seen,
            'percentage': self.percentage,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Candidate":
        return cls(**{k: d[k] for k in (
            'numeric_code', 'display_name', 'color_category', 'score',
            'frequency', 'last_seen', 'percentage') if k in d})


@dataclass(frozen=True)
class ColorPrediction:
    color_category: str
    probability_percent: int
    rationale: str
    streak_length: int = 0
    alternation_rate: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'color_category': self.color_category,
            'probability_percent': self.probability_percent,
            'rationale': self.rationale,
            'streak_length': self.streak_length,
            'alternation_rate': self.alternation_rate,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ColorPrediction":
        return cls(d['color_category'], d['probability_percent'], d['rationale'],
                   d.get('streak_length', 0), d.get('alternation_rate'))


@dataclass(frozen=True)
class PredictionBatch:
    batch_id: str
    issued_at: datetime
    candidate_set: list[Candidate]
    predicted_color: ColorPrediction
    source_result_count: int
    # most recent draw the batch was computed from; only newer draws resolve it
    based_on: Optional[DrawRecord] = None

    @property
    def candidate_codes(self) -> list[int]:
        return [c.numeric_code for c in self.candidate_set]

    @property
    def is_empty(self) -> bool:
        return not self.candidate_set

    def to_dict(self) -> dict:
        return {
            'batch_id': self.batch_id,
            'issued_at': _iso(self.issued_at),
            'candidate_set': [c.to_dict() for c in self.candidate_set],
            'predicted_color': self.predicted_color.to_dict(),
            'source_result_count': self.source_result_count,
            'based_on': self.based_on.to_dict() if self.based_on else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PredictionBatch":
        return cls(
            batch_id=d['batch_id'],
            issued_at=_parse_dt(d['issued_at']),
            candidate_set=[Candidate.from_dict(c) for c in d.get('candidate_set', [])],
            predicted_color=ColorPrediction.from_dict(d['predicted_color']),
            source_result_count=d.get('source_result_count', 0),
            based_on=DrawRecord.from_dict(d['based_on']) if d.get('based_on') else None,
        )


@dataclass(frozen=True)
class ResolvedPrediction:
    batch: PredictionBatch
    actual_result: DrawRecord
    number_hit: bool
    color_hit: bool
    resolved_at: datetime

    @property
    def match_key(self) -> tuple[int, str]:
        return self.actual_result.match_key

    @property
    def winning_candidate(self) -> Candidate | None:
        for c in self.batch.candidate_set:
            if c.numeric_code == self.actual_result.numeric_code:
                return c
        return None

    def to_dict(self) -> dict:
        d = self.batch.to_dict()
        d.update({
            'actual_result': self.actual_result.to_dict(),
            'number_hit': self.number_hit,
            'color_hit': self.color_hit,
            'resolved_at': _iso(self.resolved_at),
        })
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ResolvedPrediction":
        return cls(
            batch=PredictionBatch.from_dict(d),
            actual_result=DrawRecord.from_dict(d['actual_result']),
            number_hit=bool(d['number_hit']),
            color_hit=bool(d['color_hit']),
            resolved_at=_parse_dt(d['resolved_at']),
        )


@dataclass(frozen=True)
class AccuracyDetail:
    draw: DrawRecord
    predicted_codes: list[int]
    predicted_color: Optional[str]
    number_hit: bool
    color_hit: bool


@dataclass(frozen=True)
class AccuracySummary:
    number_accuracy_percent: float
    color_accuracy_percent: float
    combined_accuracy_percent: float
    sample_size: int
    number_hits: int = 0
    color_hits: int = 0
    details: list[AccuracyDetail] = field(default_factory=list)

    @property
    def insufficient(self) -> bool:
        return self.sample_size == 0


@dataclass(frozen=True)
class TemperatureEntry:
    numeric_code: int
    display_name: str
    color_category: str
    frequency: int
    percentage: float
    last_seen: int


@dataclass(frozen=True)
class TemperatureBuckets:
    hot: list[TemperatureEntry]
    warm: list[TemperatureEntry]
    cold: list[TemperatureEntry]
    hot_threshold: float
    warm_threshold: float
    # True when thresholds are appearance counts instead of percentages
    scaled: bool

    def __len__(self) -> int:
        return len(self.hot) + len(self.warm) + len(self.cold)

    def bucket_of(self, numeric_code: int) -> str:
        for name in ('hot', 'warm', 'cold'):
            if any(e.numeric_code == numeric_code for e in getattr(self, name)):
                return name
        raise KeyError(numeric_code)


@dataclass
class PredictionContext:
    """Everything the core works on: history newest-first, live batch, resolved log."""
    draws: list[DrawRecord] = field(default_factory=list)
    current: Optional[PredictionBatch] = None
    resolved: list[ResolvedPrediction] = field(default_factory=list)
    temperature: Optional[TemperatureBuckets] = None
    last_new_draw_at: Optional[datetime] = None

    def known_identities(self) -> set:
        return {d.identity for d in self.draws}

    def resolved_keys(self) -> set:
        return {r.match_key for r in self.resolved}

    def resolved_batch_ids(self) -> set:
        return {r.batch.batch_id for r in self.resolved}
