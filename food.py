# Food placement: rejection sampling plus the deferred-respawn bookkeeping.
from __future__ import annotations

from collections.abc import Iterable
import logging

import numpy as np

from grid3d import GridBounds, Vec3


logger = logging.getLogger(__name__)

FOOD_RESPAWN_DELAY = 0.3          # seconds between eating and the next food appearing
MAX_PLACEMENT_ATTEMPTS = 200_000


class EngineInvariantError(RuntimeError):
    """The engine reached a state its own rules should make impossible."""


class FoodPlacementError(EngineInvariantError):
    """No free cell could be found for the next food."""


def place_food(
    snake: Iterable[Vec3],
    bounds: GridBounds,
    rng: np.random.Generator,
    max_attempts: int = MAX_PLACEMENT_ATTEMPTS,
) -> Vec3:
    """Sample random cells until one is not occupied by the snake."""
    occupied = set(snake)
    low, high = bounds.sample_range()

    # A full grid would never terminate; fail fast instead of spinning.
    occupied_in_range = sum(
        1 for c in occupied if low <= c.x <= high and low <= c.y <= high and low <= c.z <= high
    )
    if occupied_in_range >= bounds.capacity:
        raise FoodPlacementError(
            f"Snake of length {len(occupied)} fills the {bounds.grid_size}^3 grid; nowhere to place food."
        )

    for attempt in range(1, max_attempts + 1):
        x, y, z = rng.integers(low, high + 1, size=3)
        candidate = Vec3(int(x), int(y), int(z))
        if candidate not in occupied:
            if attempt > 1:
                logger.debug("Food placed at %s after %d attempts", candidate.as_tuple(), attempt)
            return candidate

    raise FoodPlacementError(f"No free cell found after {max_attempts} attempts.")


class FoodPlacement:
    """At most one outstanding respawn, due `delay` seconds after it was scheduled.

    The previous food is already consumed while a respawn is pending, so the
    engine holds `food = None` until `poll` reports the placement is due.
    Placements scheduled by an earlier run (before a restart) are dropped.
    """

    def __init__(self, delay: float = FOOD_RESPAWN_DELAY) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._due_at: float | None = None
        self._run_id: int | None = None

    @property
    def pending(self) -> bool:
        return self._due_at is not None

    def schedule(self, now: float, run_id: int) -> bool:
        """Arm a respawn. Returns False if one is already in flight."""
        if self._due_at is not None:
            logger.debug("Food placement already pending; ignoring second request")
            return False
        self._due_at = now + self.delay
        self._run_id = run_id
        return True

    def poll(self, now: float, run_id: int) -> bool:
        """Return True exactly once when the pending placement for `run_id` is due."""
        if self._due_at is None:
            return False
        if self._run_id != run_id:
            logger.debug("Dropping food placement from run %s (current run %s)", self._run_id, run_id)
            self.cancel()
            return False
        if now < self._due_at:
            return False
        self.cancel()
        return True

    def cancel(self) -> None:
        self._due_at = None
        self._run_id = None
