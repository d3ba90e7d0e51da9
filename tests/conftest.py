import pytest

from gestures.config import Settings
from gestures.models import LandmarkFrame, LandmarkPoint

# Small disjoint index groups so synthetic faces hit exact metric values
GROUPS = dict(
    LEFT_EYE=[0, 1, 2, 3, 4, 5],
    RIGHT_EYE=[6, 7, 8, 9, 10, 11],
    UPPER_LIP=[12, 13, 14],
    LOWER_LIP=[15, 16, 17],
    NOSE=[18, 19],
)

EYE_W = 20.0       # corner-to-corner eye width
EYE_DIST = 100.0   # inter-eye center distance
LIP_SPAN = 100.0


def _eye(cx: float, cy: float, ear: float) -> list[tuple[float, float]]:
    # EAR = (h + h) / (2 * EYE_W)  ->  h = ear * EYE_W
    h = ear * EYE_W
    return [
        (cx - EYE_W / 2, cy),
        (cx - 5, cy - h / 2),
        (cx + 5, cy - h / 2),
        (cx + EYE_W / 2, cy),
        (cx + 5, cy + h / 2),
        (cx - 5, cy + h / 2),
    ]


def make_frame(ts: float, ear: float = 0.3, mar: float = 0.1, nx: float = 0.0,
               ear_left: float | None = None, ear_right: float | None = None,
               drop: tuple = ()) -> LandmarkFrame:
    """Synthetic face whose metrics are exactly ear / mar / nx (before smoothing)."""
    left = _eye(200.0, 100.0, ear if ear_left is None else ear_left)
    right = _eye(200.0 + EYE_DIST, 100.0, ear if ear_right is None else ear_right)
    gap = mar * LIP_SPAN
    upper = [(200.0, 200.0 - gap / 2), (250.0, 200.0 - gap / 2), (300.0, 200.0 - gap / 2)]
    lower = [(200.0, 200.0 + gap / 2), (250.0, 200.0 + gap / 2), (300.0, 200.0 + gap / 2)]
    nose = [(250.0 + nx * EYE_DIST, 150.0)] * 2

    coords = left + right + upper + lower + nose
    points = {i: LandmarkPoint(x=x, y=y) for i, (x, y) in enumerate(coords) if i not in drop}
    return LandmarkFrame(points=points, timestamp=ts)


@pytest.fixture
def settings():
    return Settings(
        EAR_THRESHOLD=0.2,
        MAR_THRESHOLD=0.5,
        SMOOTHING_WINDOW=1,
        DEBOUNCE_FRAMES=3,
        **GROUPS,
    )


@pytest.fixture
def frame_factory():
    return make_frame
