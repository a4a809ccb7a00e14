"""Scoring for the short questionnaire and deep screening."""

from intake_triage.scoring.bands import (
    DEEP_SEVERITY_BANDS,
    SHORT_SEVERITY_BANDS,
    get_severity_band,
)
from intake_triage.scoring.deep import DeepScoreResult, score_deep
from intake_triage.scoring.risk_index import RiskIndex, weighted_risk_index
from intake_triage.scoring.short import ShortScoreResult, score_short

__all__ = [
    "DEEP_SEVERITY_BANDS",
    "DeepScoreResult",
    "RiskIndex",
    "SHORT_SEVERITY_BANDS",
    "ShortScoreResult",
    "get_severity_band",
    "score_deep",
    "score_short",
    "weighted_risk_index",
]
