"""
Configuration for the gesture pipeline.
"""
from __future__ import annotations
import logging
import os
import threading
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gestures.errors import InvalidConfig

logger = logging.getLogger(__name__)


def _env_ints(name: str, default: List[int]) -> List[int]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [int(tok) for tok in raw.replace(" ", "").split(",") if tok]


# MediaPipe FaceMesh indices. Eyes: lateral corner, two upper-lid points,
# medial corner, two lower-lid points.
RIGHT_EYE_IDS = [33, 160, 158, 133, 153, 144]
LEFT_EYE_IDS = [362, 385, 387, 263, 373, 380]
UPPER_LIP_IDS = [61, 185, 40, 39, 37, 0, 267, 269, 270, 409, 291, 308, 415, 310, 311, 312, 13, 82, 81, 80, 191, 78]
LOWER_LIP_IDS = [78, 95, 88, 178, 87, 14, 317, 402, 318, 324, 308, 291, 375, 321, 405, 314, 17, 84, 181, 91, 146, 61]
NOSE_IDS = [1, 4, 5]


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.

    Instances are frozen: a session reads one instance per frame, and updates
    go through ConfigStore, which swaps in a freshly validated instance.
    """
    model_config = ConfigDict(frozen=True, validate_default=True)

    EAR_THRESHOLD: float = Field(float(os.getenv("EAR_THRESHOLD", "0.22")), ge=0.0)
    MAR_THRESHOLD: float = Field(float(os.getenv("MAR_THRESHOLD", "0.30")), ge=0.0)
    SMOOTHING_WINDOW: int = Field(int(os.getenv("SMOOTHING_WINDOW", "3")), ge=1)
    DEBOUNCE_FRAMES: int = Field(int(os.getenv("DEBOUNCE_FRAMES", "2")), ge=1)

    # Head turn: classify thresholds are magnitudes on normalized_x
    TURN_LEFT_THRESH: float = Field(float(os.getenv("TURN_LEFT_THRESH", "0.12")), ge=0.0)
    TURN_RIGHT_THRESH: float = Field(float(os.getenv("TURN_RIGHT_THRESH", "0.12")), ge=0.0)
    TURN_EMIT_THRESH: float = Field(float(os.getenv("TURN_EMIT_THRESH", "0.35")), ge=0.0)

    BLINK_RATE_WINDOW: float = Field(float(os.getenv("BLINK_RATE_WINDOW", "60")), gt=0.0)
    BLINK_STRATEGY: Literal["average", "per_eye"] = os.getenv("BLINK_STRATEGY", "average")

    LEFT_EYE: List[int] = _env_ints("LEFT_EYE", LEFT_EYE_IDS)
    RIGHT_EYE: List[int] = _env_ints("RIGHT_EYE", RIGHT_EYE_IDS)
    UPPER_LIP: List[int] = _env_ints("UPPER_LIP", UPPER_LIP_IDS)
    LOWER_LIP: List[int] = _env_ints("LOWER_LIP", LOWER_LIP_IDS)
    NOSE: List[int] = _env_ints("NOSE", NOSE_IDS)

    EVENTS_LOG: str = os.getenv("EVENTS_LOG", "events.log")

    @field_validator("BLINK_STRATEGY", mode="before")
    @classmethod
    def _normalize_strategy(cls, v):
        # tolerate "Per-Eye", " AVERAGE " etc. from env/UI
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @field_validator("LEFT_EYE", "RIGHT_EYE")
    @classmethod
    def _six_points(cls, v: List[int]) -> List[int]:
        if len(v) != 6:
            raise ValueError("an eye group needs exactly 6 landmark indices")
        return v

    @field_validator("UPPER_LIP", "LOWER_LIP", "NOSE")
    @classmethod
    def _non_empty(cls, v: List[int]) -> List[int]:
        if not v:
            raise ValueError("landmark group must not be empty")
        return v


class ConfigStore:
    """
    Holds the current Settings snapshot.

    Writers (API handlers, UI callbacks) call update(); the per-frame tick calls
    get() once and uses that snapshot for the whole frame.
    """
    def __init__(self, settings: Settings | None = None):
        self._current = settings or Settings()
        self._lock = threading.Lock()

    def get(self) -> Settings:
        return self._current

    def update(self, **changes) -> Settings:
        """
        Validate and apply a partial update atomically.

        Raises:
            InvalidConfig: unknown key or value outside its domain; the
                previous snapshot stays in effect.
        """
        unknown = set(changes) - set(Settings.model_fields)
        if unknown:
            raise InvalidConfig(f"unknown config keys: {sorted(unknown)}")
        with self._lock:
            merged = {**self._current.model_dump(), **changes}
            try:
                new = Settings.model_validate(merged)
            except ValidationError as e:
                logger.warning(f"[config] rejected update {changes}: {e.error_count()} error(s)")
                raise InvalidConfig(str(e)) from e
            self._current = new
        logger.debug(f"[config] applied update {changes}")
        return new
