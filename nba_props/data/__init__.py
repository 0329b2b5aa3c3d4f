"""
Data layer for the NBA props pipeline.

Provides unified access to all data sources:
- The Odds API (standard and alternate player prop lines)
- API-Sports (player ids, game logs, league scores for defense ranks)
- Vertex AI (prop probability inference)

and the shared per-game dataset both scoring engines consume.
"""
from .models import (
    AltLine,
    AltProp,
    DataHealth,
    DefenseRank,
    GameLogEntry,
    HealthStatus,
    HitRate,
    HitRateSummary,
    Prediction,
    Prop,
    SharedData,
)
from .pipeline import DataPipeline, PipelineHealth, assess_health

__all__ = [
    # Pipeline
    "DataPipeline",
    "PipelineHealth",
    "assess_health",
    # Models
    "AltLine",
    "AltProp",
    "DataHealth",
    "DefenseRank",
    "GameLogEntry",
    "HealthStatus",
    "HitRate",
    "HitRateSummary",
    "Prediction",
    "Prop",
    "SharedData",
]
