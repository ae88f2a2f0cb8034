# Integer 3D vectors, the direction table, and the cubic grid bounds.
from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class Vec3:
    """Integer grid coordinate (also used for the six unit directions)."""
    x: int
    y: int
    z: int

    def __post_init__(self) -> None:
        for value in (self.x, self.y, self.z):
            # bool is an int subclass but never a coordinate.
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"Vec3 coordinates must be integers, got {value!r}")

    def __add__(self, other: Vec3) -> Vec3:
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vec3) -> Vec3:
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Vec3:
        return Vec3(-self.x, -self.y, -self.z)

    def manhattan(self, other: Vec3) -> int:
        return abs(self.x - other.x) + abs(self.y - other.y) + abs(self.z - other.z)

    def distance(self, other: Vec3) -> float:
        """Euclidean distance, used only for ranking autopilot candidates."""
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)

    def as_tuple(self) -> tuple[int, int, int]:
        return self.x, self.y, self.z

    @classmethod
    def of(cls, coords: tuple[int, int, int] | list[int]) -> Vec3:
        x, y, z = coords
        return cls(int(x), int(y), int(z))


ORIGIN = Vec3(0, 0, 0)

POS_X = Vec3(1, 0, 0)
NEG_X = Vec3(-1, 0, 0)
POS_Y = Vec3(0, 1, 0)
NEG_Y = Vec3(0, -1, 0)
POS_Z = Vec3(0, 0, 1)
NEG_Z = Vec3(0, 0, -1)

# Fixed enumeration order; also the autopilot tie-break order.
DIRECTION_ORDER = (POS_X, NEG_X, POS_Y, NEG_Y, POS_Z, NEG_Z)
UNIT_DIRECTIONS = frozenset(DIRECTION_ORDER)

# Logical symbols first, then the physical keys the front-end forwards.
# q/e move along z: q goes into the screen (-z), e comes out of it (+z).
DIRECTIONS: dict[str, Vec3] = {
    "up": POS_Y,
    "down": NEG_Y,
    "left": NEG_X,
    "right": POS_X,
    "axis-in": NEG_Z,
    "axis-out": POS_Z,
    "ArrowUp": POS_Y,
    "ArrowDown": NEG_Y,
    "ArrowLeft": NEG_X,
    "ArrowRight": POS_X,
    "Up": POS_Y,
    "Down": NEG_Y,
    "Left": NEG_X,
    "Right": POS_X,
    "w": POS_Y,
    "s": NEG_Y,
    "a": NEG_X,
    "d": POS_X,
    "q": NEG_Z,
    "e": POS_Z,
}

AXIS_LABELS = {
    POS_X: "+X",
    NEG_X: "-X",
    POS_Y: "+Y",
    NEG_Y: "-Y",
    POS_Z: "+Z",
    NEG_Z: "-Z",
}


def direction_for(symbol: str) -> Vec3 | None:
    """Look up a movement symbol; unknown symbols map to None (never an error)."""
    if symbol in DIRECTIONS:
        return DIRECTIONS[symbol]
    # Single letters are case-insensitive (W == w).
    if len(symbol) == 1:
        return DIRECTIONS.get(symbol.lower())
    return None


def is_direction(value: Vec3) -> bool:
    return value in UNIT_DIRECTIONS


def is_reverse(direction: Vec3, other: Vec3) -> bool:
    """True when `direction` is the exact 180-degree turn of `other`."""
    return direction == -other


def axis_label(direction: Vec3) -> str:
    return AXIS_LABELS.get(direction, "?")


@dataclass(frozen=True)
class GridBounds:
    """Cube centred on the origin; `grid_size` cells along each axis."""
    grid_size: int

    def __post_init__(self) -> None:
        if self.grid_size < 1:
            raise ValueError("grid_size must be >= 1")

    @property
    def half_extent(self) -> float:
        # True division: an odd size admits floor(size/2) on both sides.
        return self.grid_size / 2

    def contains(self, cell: Vec3) -> bool:
        half = self.half_extent
        return abs(cell.x) <= half and abs(cell.y) <= half and abs(cell.z) <= half

    def sample_range(self) -> tuple[int, int]:
        """Inclusive per-axis range food is drawn from."""
        low = -(self.grid_size // 2)
        return low, low + self.grid_size - 1

    @property
    def capacity(self) -> int:
        """Number of cells food can be placed on."""
        return self.grid_size ** 3

    def sample_cells(self) -> list[Vec3]:
        low, high = self.sample_range()
        span = range(low, high + 1)
        return [Vec3(x, y, z) for x in span for y in span for z in span]
