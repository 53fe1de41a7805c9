"""Spottify cycle inference engine.

Pure functions that turn a user's unordered daily measurements into
segmented cycles, weighted statistics, next-cycle predictions and BBT
overlays.  Nothing here performs I/O except ``sync/``, which talks to an
injected measurement store.

Modules:
    segmenter     — Group flow days into cycles (7-day gap rule)
    cycle_stats   — Recency-weighted averages and variation
    predictor     — Next period / ovulation / fertile window + calendar queries
    temperature   — BBT cycle-day alignment and historical averages
    data_quality  — Incomplete-period alerts
    config_loader — Load/validate/hot-reload cycle_config.yaml
    sync/         — Import validation, dedup, export
"""

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.cycle_stats import CycleStats, calculate_cycle_stats
from src.cycles.predictor import CyclePredictor, Prediction, predict_next_cycle
from src.cycles.segmenter import Cycle, segment_cycles

__all__ = [
    "Cycle",
    "CycleConfig",
    "CyclePredictor",
    "CycleStats",
    "Prediction",
    "calculate_cycle_stats",
    "get_cycle_config",
    "predict_next_cycle",
    "segment_cycles",
]
