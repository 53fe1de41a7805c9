"""Load, validate, and hot-reload the cycle engine configuration.

The config lives in ``cycle_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_cycle_config()`` to re-read from
disk after an admin update without restarting the process.

Usage::

    from src.cycles.config_loader import get_cycle_config

    config = get_cycle_config()
    config.minimum_gap_between_periods_days   # 7
    config.fertile_window_start_days_before_ovulation  # 5
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("spottify.cycles.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "cycle_config.yaml"


@dataclass
class CycleConfig:
    """Complete, validated cycle engine configuration.

    This is the single in-memory representation of cycle_config.yaml.
    The segmenter, statistics engine, predictor, temperature correlator and
    data-quality checks all read from this object.

    Attributes:
        version:                          Config schema version string.
        minimum_gap_between_periods_days: Gap (days) above which a new cycle starts.
        minimum_cycles_for_predictions:   Closed cycles needed before predicting.
        recency_decay:                    Per-cycle-back weight multiplier (0–1].
        days_before_period_for_ovulation: Luteal length used to place ovulation.
        fertile_window_start_days_before_ovulation: Fertile window lead.
        fertile_window_end_days_after_ovulation:    Fertile window tail.
        bbt_min_samples_per_day:          Samples needed for a historical BBT point.
        bbt_round_digits:                 Decimal places for averaged BBT.
        incomplete_period_lookback_months: Months scanned for incomplete periods.
        incomplete_period_min_days:       Flow days below which a month is flagged.
    """

    version: str = "1.0"
    minimum_gap_between_periods_days: int = 7
    minimum_cycles_for_predictions: int = 2
    recency_decay: float = 0.8
    days_before_period_for_ovulation: int = 14
    fertile_window_start_days_before_ovulation: int = 5
    fertile_window_end_days_after_ovulation: int = 1
    bbt_min_samples_per_day: int = 2
    bbt_round_digits: int = 2
    incomplete_period_lookback_months: int = 6
    incomplete_period_min_days: int = 3
    _raw: dict = field(default_factory=dict, repr=False)

    @property
    def fertile_window_span_days(self) -> int:
        """Days covered by the fertile window beyond its first day."""
        return (
            self.fertile_window_start_days_before_ovulation
            + self.fertile_window_end_days_after_ovulation
        )


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when cycle_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Cycle config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> CycleConfig:
    """Validate the raw YAML dict and construct a CycleConfig.

    Missing sections fall back to the dataclass defaults.

    Raises:
        ConfigValidationError: If any value has the wrong type or range.
    """
    errors: list[str] = []
    defaults = CycleConfig()

    def _int(section: dict, key: str, path: str, default: int, minimum: int) -> int:
        val = section.get(key, default)
        try:
            parsed = int(val)
        except (TypeError, ValueError):
            errors.append(f"{path} must be an integer, got {val!r}")
            return default
        if isinstance(val, float) and not val.is_integer():
            errors.append(f"{path} must be a whole number, got {val!r}")
        if parsed < minimum:
            errors.append(f"{path} = {parsed} is below the minimum of {minimum}")
        return parsed

    seg_raw = raw.get("segmentation") or {}
    stats_raw = raw.get("statistics") or {}
    pred_raw = raw.get("prediction") or {}
    fw_raw = pred_raw.get("fertile_window") or {}
    temp_raw = raw.get("temperature") or {}
    dq_raw = raw.get("data_quality") or {}

    # ── Statistics ──
    decay_val = stats_raw.get("recency_decay", defaults.recency_decay)
    try:
        decay = float(decay_val)
    except (TypeError, ValueError):
        errors.append(f"statistics.recency_decay must be a number, got {decay_val!r}")
        decay = defaults.recency_decay
    else:
        if not (0.0 < decay <= 1.0):
            errors.append(f"statistics.recency_decay = {decay} is out of range (0.0, 1.0]")

    config = CycleConfig(
        version=str(raw.get("version", "1.0")),
        minimum_gap_between_periods_days=_int(
            seg_raw, "minimum_gap_between_periods_days",
            "segmentation.minimum_gap_between_periods_days",
            defaults.minimum_gap_between_periods_days, 1,
        ),
        minimum_cycles_for_predictions=_int(
            stats_raw, "minimum_cycles_for_predictions",
            "statistics.minimum_cycles_for_predictions",
            defaults.minimum_cycles_for_predictions, 1,
        ),
        recency_decay=decay,
        days_before_period_for_ovulation=_int(
            pred_raw, "days_before_period_for_ovulation",
            "prediction.days_before_period_for_ovulation",
            defaults.days_before_period_for_ovulation, 0,
        ),
        fertile_window_start_days_before_ovulation=_int(
            fw_raw, "start_days_before_ovulation",
            "prediction.fertile_window.start_days_before_ovulation",
            defaults.fertile_window_start_days_before_ovulation, 0,
        ),
        fertile_window_end_days_after_ovulation=_int(
            fw_raw, "end_days_after_ovulation",
            "prediction.fertile_window.end_days_after_ovulation",
            defaults.fertile_window_end_days_after_ovulation, 0,
        ),
        bbt_min_samples_per_day=_int(
            temp_raw, "min_samples_per_day", "temperature.min_samples_per_day",
            defaults.bbt_min_samples_per_day, 1,
        ),
        bbt_round_digits=_int(
            temp_raw, "round_digits", "temperature.round_digits",
            defaults.bbt_round_digits, 0,
        ),
        incomplete_period_lookback_months=_int(
            dq_raw, "lookback_months", "data_quality.lookback_months",
            defaults.incomplete_period_lookback_months, 1,
        ),
        incomplete_period_min_days=_int(
            dq_raw, "incomplete_period_min_days",
            "data_quality.incomplete_period_min_days",
            defaults.incomplete_period_min_days, 1,
        ),
        _raw=raw,
    )

    if errors:
        raise ConfigValidationError(
            f"cycle_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return config


def load_cycle_config(path: Path | None = None) -> CycleConfig:
    """Load and validate the cycle config from disk.

    Args:
        path: Override path to YAML. Uses the bundled cycle_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded cycle config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Cached instance with hot-reload support
# ---------------------------------------------------------------------------

_config: CycleConfig | None = None
_config_lock = threading.Lock()


def get_cycle_config() -> CycleConfig:
    """Return the cached CycleConfig, loading it on first call.

    Thread-safe.  Use ``reload_cycle_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_cycle_config()
    return _config


def reload_cycle_config(path: Path | None = None) -> CycleConfig:
    """Reload the cycle config from disk and replace the cached instance.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_cycle_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded cycle config: %s → %s", old_version, new_config.version)
    return new_config
