# Greedy 3D autopilot and the axis-ordered path predictor shown as an overlay.
from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from grid3d import DIRECTION_ORDER, GridBounds, Vec3, is_reverse
from movement import is_safe_move


# Unit direction per axis, indexed [axis][sign > 0].
_AXIS_UNITS = (
    (Vec3(-1, 0, 0), Vec3(1, 0, 0)),
    (Vec3(0, -1, 0), Vec3(0, 1, 0)),
    (Vec3(0, 0, -1), Vec3(0, 0, 1)),
)


def _acceptable(snake: Sequence[Vec3], direction: Vec3, last_direction: Vec3, bounds: GridBounds) -> bool:
    return not is_reverse(direction, last_direction) and is_safe_move(snake, direction, bounds)


def preferred_direction(head: Vec3, food: Vec3) -> Vec3 | None:
    """Unit step along the axis with the largest |food - head| (ties: x, y, z)."""
    delta = (food - head).as_tuple()
    magnitudes = [abs(d) for d in delta]
    if max(magnitudes) == 0:
        return None
    # index() returns the first maximum, which is the x > y > z priority.
    axis = magnitudes.index(max(magnitudes))
    return _AXIS_UNITS[axis][delta[axis] > 0]


def choose_autopilot_direction(
    snake: Sequence[Vec3],
    food: Vec3 | None,
    last_direction: Vec3,
    bounds: GridBounds,
) -> Vec3 | None:
    """Pick a collision-free direction that greedily closes on the food.

    Not a path finder: it can walk into pockets it cannot leave. Returns None
    only when every direction reverses, leaves the grid, or hits the body.
    """
    head = snake[0]
    candidates = [d for d in DIRECTION_ORDER if _acceptable(snake, d, last_direction, bounds)]
    if not candidates:
        return None

    if food is None:
        # Food is respawning; keep going straight if that is safe.
        return last_direction if last_direction in candidates else candidates[0]

    preferred = preferred_direction(head, food)
    if preferred is not None and preferred in candidates:
        return preferred

    heads = np.array([(head + d).as_tuple() for d in candidates], dtype=np.float64)
    distances = np.linalg.norm(heads - np.array(food.as_tuple(), dtype=np.float64), axis=1)
    # argmin keeps the first minimum, i.e. DIRECTION_ORDER breaks ties.
    return candidates[int(np.argmin(distances))]


def predict_path(head: Vec3, food: Vec3 | None) -> list[Vec3]:
    """Corner points of the x-then-y-then-z route from head to food.

    Returns an empty list when there is nothing to draw (no food, or the
    head already sits on it).
    """
    if food is None:
        return []
    points: list[Vec3] = []
    current = head
    for axis in range(3):
        coords = list(current.as_tuple())
        target = food.as_tuple()[axis]
        if coords[axis] == target:
            continue
        if not points:
            points.append(current)
        coords[axis] = target
        current = Vec3.of(coords)
        points.append(current)
    return points
