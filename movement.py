# One simulation step: direction latching, new head, collisions, growth.
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from grid3d import GridBounds, Vec3, is_reverse


WALL = "wall"
SELF = "self"


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a single step. On collision `snake` is the unchanged body."""
    snake: tuple[Vec3, ...]
    direction: Vec3
    ate: bool = False
    collided: bool = False
    reason: str | None = None     # WALL or SELF when collided


def resolve_direction(requested: Vec3 | None, last_direction: Vec3) -> Vec3:
    """Apply the no-180-degree rule: a reversal (or no request) keeps the last direction."""
    if requested is None or is_reverse(requested, last_direction):
        return last_direction
    return requested


def hits_body(snake: Sequence[Vec3], cell: Vec3) -> bool:
    """Would a head entering `cell` overlap the body? The tail vacates, so it is excluded."""
    return cell in snake[:-1]


def is_safe_move(snake: Sequence[Vec3], direction: Vec3, bounds: GridBounds) -> bool:
    new_head = snake[0] + direction
    return bounds.contains(new_head) and not hits_body(snake, new_head)


def step(
    snake: Sequence[Vec3],
    requested: Vec3 | None,
    last_direction: Vec3,
    food: Vec3 | None,
    bounds: GridBounds,
) -> MoveResult:
    """Advance the snake one cell. `food=None` means nothing is eatable this tick."""
    body = tuple(snake)
    if not body:
        raise ValueError("snake must have at least one cell")

    direction = resolve_direction(requested, last_direction)
    new_head = body[0] + direction

    if not bounds.contains(new_head):
        return MoveResult(body, direction, collided=True, reason=WALL)

    if hits_body(body, new_head):
        return MoveResult(body, direction, collided=True, reason=SELF)

    if food is not None and new_head == food:
        return MoveResult((new_head,) + body, direction, ate=True)

    return MoveResult((new_head,) + body[:-1], direction)
