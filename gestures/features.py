"""
Geometric feature extraction from one landmark frame.

- EAR (eye aspect ratio) per eye and averaged
- MAR (mouth aspect ratio) from lip centroids over the lip span
- Yaw estimate from the eye-midpoint -> nose vector

Pure functions: nothing here keeps state between frames.
"""
from __future__ import annotations
import logging
import math
from typing import Dict, Iterable, Set

import numpy as np

from gestures.config import Settings
from gestures.errors import MissingLandmarks
from gestures.models import FaceMetrics, LandmarkFrame

logger = logging.getLogger(__name__)

DENOM_FLOOR = 1.0


def _floor(d: float, what: str) -> float:
    """Replace a zero denominator with DENOM_FLOOR (same units)."""
    if d == 0.0:
        logger.debug(f"[features] degenerate geometry: {what} is zero, using {DENOM_FLOOR}")
        return DENOM_FLOOR
    return d


def _dist(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(a - b))


def required_indices(settings: Settings) -> Set[int]:
    """Every landmark index a frame must carry to produce metrics."""
    groups = (settings.LEFT_EYE, settings.RIGHT_EYE, settings.UPPER_LIP,
              settings.LOWER_LIP, settings.NOSE)
    return {i for g in groups for i in g}


def _gather(frame: LandmarkFrame, ids: Iterable[int], group: str) -> np.ndarray:
    ids = list(ids)
    missing = [i for i in ids if i not in frame.points]
    if missing:
        raise MissingLandmarks(group, missing)
    return np.array([[frame.points[i].x, frame.points[i].y] for i in ids], dtype=np.float64)


def eye_aspect_ratio(eye: np.ndarray) -> float:
    """
    EAR for six ordered eye points p0..p5:
    (|p1-p5| + |p2-p4|) / (2 * |p0-p3|)
    """
    a = _dist(eye[1], eye[5])
    b = _dist(eye[2], eye[4])
    c = _floor(_dist(eye[0], eye[3]), "eye corner distance")
    return (a + b) / (2.0 * c)


def mouth_aspect_ratio(upper: np.ndarray, lower: np.ndarray) -> float:
    """Vertical gap between lip centroids over the horizontal span of all lip points."""
    vert = abs(float(lower[:, 1].mean() - upper[:, 1].mean()))
    combined = np.vstack([upper, lower])
    span = _floor(float(combined[:, 0].max() - combined[:, 0].min()), "lip span")
    return vert / span


def estimate_yaw(left_center: np.ndarray, right_center: np.ndarray,
                 nose: np.ndarray) -> tuple[float, float]:
    """
    2D yaw approximation. Returns (yaw_deg, normalized_x) where normalized_x is
    the horizontal eye-midpoint -> nose offset in units of inter-eye distance.
    Positive values mean a turn to the subject's left.
    """
    mid = (left_center + right_center) / 2.0
    vx = float(nose[0] - mid[0])
    eye_dist = _floor(_dist(left_center, right_center), "inter-eye distance")
    normalized_x = vx / eye_dist
    return yaw_from_normalized(normalized_x), normalized_x


def yaw_from_normalized(normalized_x: float) -> float:
    return math.degrees(math.atan2(normalized_x, 1.0))


def extract_features(frame: LandmarkFrame, settings: Settings) -> FaceMetrics:
    """
    Compute all metrics for one frame.

    Raises:
        MissingLandmarks: a configured index is absent; no partial metrics.
    """
    # gather everything first so a missing index aborts before any math
    groups: Dict[str, np.ndarray] = {}
    for name, ids in (("left_eye", settings.LEFT_EYE), ("right_eye", settings.RIGHT_EYE),
                      ("upper_lip", settings.UPPER_LIP), ("lower_lip", settings.LOWER_LIP),
                      ("nose", settings.NOSE)):
        groups[name] = _gather(frame, ids, name)

    ear_left = eye_aspect_ratio(groups["left_eye"])
    ear_right = eye_aspect_ratio(groups["right_eye"])
    mar = mouth_aspect_ratio(groups["upper_lip"], groups["lower_lip"])
    yaw_deg, normalized_x = estimate_yaw(
        groups["left_eye"].mean(axis=0),
        groups["right_eye"].mean(axis=0),
        groups["nose"].mean(axis=0),
    )
    return FaceMetrics(
        ear_left=ear_left,
        ear_right=ear_right,
        ear_avg=(ear_left + ear_right) / 2.0,
        mar=mar,
        yaw_deg=yaw_deg,
        normalized_x=normalized_x,
    )
