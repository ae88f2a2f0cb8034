# Core 3D Snake game state and rules, independent from GUI/benchmark code.
from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from enum import Enum
import logging

import numpy as np

from autopilot import choose_autopilot_direction, predict_path
from food import FoodPlacement, FOOD_RESPAWN_DELAY, place_food
from grid3d import GridBounds, Vec3, axis_label, direction_for, is_direction
from movement import MoveResult, step
from scoring import ScoreReporter, ScoreService, SessionProvider


logger = logging.getLogger(__name__)

# Bounds the settings screen clamps to.
MIN_GRID_SIZE = 10
MAX_GRID_SIZE = 24
INITIAL_GRID_SIZE = 14
GRID_SIZE_STEP = 1
MIN_GAME_SPEED = 1.0
MAX_GAME_SPEED = 6.0
INITIAL_GAME_SPEED = 3.0          # moves per second
GAME_SPEED_STEP = 0.5
SCORE_PER_FOOD = 10
TICK_TOLERANCE = 1e-9            # absorbs float drift in accumulated clocks

# Input events (the engine is agnostic to which device produced them).
PAUSE = "pause"
RESUME = "resume"
RESTART = "restart"
SETTINGS_OPEN = "settings-open"
SETTINGS_CLOSE = "settings-close"
SETTINGS_TOGGLE = "settings-toggle"
GRID_GROW = "grid-grow"
GRID_SHRINK = "grid-shrink"
SPEED_UP = "speed-up"
SPEED_DOWN = "speed-down"
AUTOPILOT_TOGGLE = "autopilot-toggle"
PATH_OVERLAY_TOGGLE = "path-overlay-toggle"
GUIDELINES_TOGGLE = "guidelines-toggle"

CONTROL_EVENTS = frozenset({
    PAUSE, RESUME, RESTART, SETTINGS_OPEN, SETTINGS_CLOSE, SETTINGS_TOGGLE,
    GRID_GROW, GRID_SHRINK, SPEED_UP, SPEED_DOWN,
    AUTOPILOT_TOGGLE, PATH_OVERLAY_TOGGLE, GUIDELINES_TOGGLE,
})

KEY_BINDINGS = {
    "p": PAUSE,
    "r": RESTART,
    "Tab": SETTINGS_TOGGLE,
    "Escape": SETTINGS_CLOSE,
    "[": GRID_SHRINK,
    "]": GRID_GROW,
    "-": SPEED_DOWN,
    "=": SPEED_UP,
    "f": PATH_OVERLAY_TOGGLE,
    "g": GUIDELINES_TOGGLE,
    "t": AUTOPILOT_TOGGLE,
}


def event_for_key(key: str) -> str | None:
    """Translate a physical key name into an engine event (None if unbound)."""
    if direction_for(key) is not None:
        return key
    if key in KEY_BINDINGS:
        return KEY_BINDINGS[key]
    if len(key) == 1:
        return KEY_BINDINGS.get(key.lower())
    return None


class Mode(str, Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    SETTINGS = "settings"
    GAME_OVER = "game_over"


@dataclass
class SnakeConfig:
    """Runtime settings shared between the engine and its front-ends."""
    grid_size: int = INITIAL_GRID_SIZE
    min_grid_size: int = MIN_GRID_SIZE
    max_grid_size: int = MAX_GRID_SIZE
    grid_size_step: int = GRID_SIZE_STEP
    game_speed: float = INITIAL_GAME_SPEED
    min_game_speed: float = MIN_GAME_SPEED
    max_game_speed: float = MAX_GAME_SPEED
    game_speed_step: float = GAME_SPEED_STEP
    score_per_food: int = SCORE_PER_FOOD
    food_respawn_delay: float = FOOD_RESPAWN_DELAY
    initial_snake: tuple[tuple[int, int, int], ...] = ((0, 0, 0),)
    initial_direction: tuple[int, int, int] = (1, 0, 0)
    autopilot: bool = False
    show_path: bool = True
    show_guidelines: bool = True
    seed: int | None = None

    def validated(self) -> SnakeConfig:
        """Raise ValueError for settings the engine cannot run with; return self."""
        if self.min_grid_size < 1 or self.min_grid_size > self.max_grid_size:
            raise ValueError(
                f"Grid size bounds must satisfy 1 <= min <= max (got {self.min_grid_size}..{self.max_grid_size})."
            )
        if not (self.min_grid_size <= self.grid_size <= self.max_grid_size):
            raise ValueError(
                f"Grid size must be between {self.min_grid_size} and {self.max_grid_size}."
            )
        if self.min_game_speed <= 0 or self.min_game_speed > self.max_game_speed:
            raise ValueError(
                f"Speed bounds must satisfy 0 < min <= max (got {self.min_game_speed}..{self.max_game_speed})."
            )
        if not (self.min_game_speed <= self.game_speed <= self.max_game_speed):
            raise ValueError(
                f"Game speed must be between {self.min_game_speed} and {self.max_game_speed}."
            )
        if self.grid_size_step <= 0 or self.game_speed_step <= 0:
            raise ValueError("Settings steps must be > 0.")
        if self.score_per_food < 0:
            raise ValueError("score_per_food must be >= 0.")
        if self.food_respawn_delay < 0:
            raise ValueError("food_respawn_delay must be >= 0.")
        if not is_direction(Vec3.of(self.initial_direction)):
            raise ValueError(f"initial_direction must be a unit axis vector, got {self.initial_direction}.")

        body = [Vec3.of(c) for c in self.initial_snake]
        if not body:
            raise ValueError("initial_snake needs at least one cell.")
        if len(set(body)) != len(body):
            raise ValueError("initial_snake cells must be distinct.")
        bounds = GridBounds(self.min_grid_size)
        if not all(bounds.contains(c) for c in body):
            raise ValueError("initial_snake must fit inside the smallest grid.")
        return self

    def clamp_grid_size(self, value: int) -> int:
        return max(self.min_grid_size, min(self.max_grid_size, value))

    def clamp_game_speed(self, value: float) -> float:
        return max(self.min_game_speed, min(self.max_game_speed, value))


@dataclass(frozen=True)
class GameState:
    """Everything one run owns. Replaced wholesale, never mutated."""
    snake: tuple[Vec3, ...]
    food: Vec3 | None                 # None while the next food is respawning
    direction: Vec3                   # applied on the previous tick
    pending_direction: Vec3           # latched for the next tick
    mode: Mode = Mode.PLAYING
    score: int = 0
    grid_size: int = INITIAL_GRID_SIZE
    game_speed: float = INITIAL_GAME_SPEED
    settings_return: Mode | None = None
    autopilot: bool = False
    show_path: bool = True
    show_guidelines: bool = True
    new_high_score: bool = False
    death_reason: str | None = None
    run_id: int = 0
    ticks: int = 0

    @property
    def head(self) -> Vec3:
        return self.snake[0]

    @property
    def bounds(self) -> GridBounds:
        return GridBounds(self.grid_size)


def initial_state(config: SnakeConfig, run_id: int = 0) -> GameState:
    """Fresh run: initial body and direction, no food yet (the engine places it)."""
    direction = Vec3.of(config.initial_direction)
    return GameState(
        snake=tuple(Vec3.of(c) for c in config.initial_snake),
        food=None,
        direction=direction,
        pending_direction=direction,
        grid_size=config.grid_size,
        game_speed=config.game_speed,
        autopilot=config.autopilot,
        show_path=config.show_path,
        show_guidelines=config.show_guidelines,
        run_id=run_id,
    )


def restarted(state: GameState, config: SnakeConfig) -> GameState:
    """New run keeping the settings and toggles that persist across restarts."""
    fresh = initial_state(config, run_id=state.run_id + 1)
    return replace(
        fresh,
        grid_size=state.grid_size,
        game_speed=state.game_speed,
        autopilot=state.autopilot,
        show_path=state.show_path,
        show_guidelines=state.show_guidelines,
    )


def _open_settings(state: GameState) -> GameState:
    if state.mode is Mode.SETTINGS:
        return state
    return replace(state, mode=Mode.SETTINGS, settings_return=state.mode)


def _close_settings(state: GameState) -> GameState:
    if state.mode is not Mode.SETTINGS:
        return state
    return replace(state, mode=state.settings_return or Mode.PAUSED, settings_return=None)


def reduce_input(state: GameState, event: str, config: SnakeConfig) -> GameState:
    """Pure transition for one input event. Unknown events leave the state as is."""
    direction = direction_for(event)
    if direction is not None:
        # Latched in every mode; the next Playing tick decides whether it applies.
        return replace(state, pending_direction=direction)

    mode = state.mode

    if event == AUTOPILOT_TOGGLE:
        return replace(state, autopilot=not state.autopilot)
    if event == PATH_OVERLAY_TOGGLE:
        return replace(state, show_path=not state.show_path)
    if event == GUIDELINES_TOGGLE:
        return replace(state, show_guidelines=not state.show_guidelines)

    if event == SETTINGS_OPEN:
        return _open_settings(state)
    if event == SETTINGS_CLOSE:
        return _close_settings(state)
    if event == SETTINGS_TOGGLE:
        return _close_settings(state) if mode is Mode.SETTINGS else _open_settings(state)

    if mode is Mode.SETTINGS:
        if event == GRID_GROW:
            return replace(state, grid_size=config.clamp_grid_size(state.grid_size + config.grid_size_step))
        if event == GRID_SHRINK:
            return replace(state, grid_size=config.clamp_grid_size(state.grid_size - config.grid_size_step))
        if event == SPEED_UP:
            return replace(state, game_speed=config.clamp_game_speed(state.game_speed + config.game_speed_step))
        if event == SPEED_DOWN:
            return replace(state, game_speed=config.clamp_game_speed(state.game_speed - config.game_speed_step))
        return state

    if event == PAUSE:
        if mode is Mode.PLAYING:
            return replace(state, mode=Mode.PAUSED)
        if mode is Mode.PAUSED:
            return replace(state, mode=Mode.PLAYING)
        return state
    if event == RESUME:
        return replace(state, mode=Mode.PLAYING) if mode is Mode.PAUSED else state
    if event == RESTART:
        return restarted(state, config) if mode is Mode.GAME_OVER else state

    return state


def difficulty_label(game_speed: float) -> str:
    if game_speed >= 5:
        return "Hard"
    if game_speed >= 3.5:
        return "Medium"
    return "Easy"


@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view handed to the display after every processed event."""
    snake: tuple[Vec3, ...]
    food: Vec3 | None
    score: int
    mode: Mode
    game_speed: float
    grid_size: int
    direction: Vec3
    pending_direction: Vec3
    autopilot: bool
    show_path: bool
    show_guidelines: bool
    new_high_score: bool
    death_reason: str | None
    run_id: int
    ticks: int
    path: tuple[Vec3, ...] = field(default_factory=tuple)

    @property
    def head(self) -> Vec3:
        return self.snake[0]

    @property
    def length(self) -> int:
        return len(self.snake)

    @property
    def difficulty(self) -> str:
        return difficulty_label(self.game_speed)

    @property
    def direction_label(self) -> str:
        return axis_label(self.direction)

    @property
    def food_pending(self) -> bool:
        return self.food is None


class SnakeEngine:
    """Owns one game's state; `handle_input` and `advance` are the only mutators."""

    def __init__(
        self,
        config: SnakeConfig | None = None,
        session: SessionProvider | None = None,
        score_service: ScoreService | None = None,
        executor: Executor | None = None,
        rng: np.random.Generator | None = None,
        start_time: float = 0.0,
    ) -> None:
        self.config = (config or SnakeConfig()).validated()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.food_placement = FoodPlacement(self.config.food_respawn_delay)
        self.scores = ScoreReporter(score_service, session, executor)
        self.clock = start_time
        self.last_tick_time = start_time
        self.state = self._with_food(initial_state(self.config))

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.state.game_speed

    def _with_food(self, state: GameState) -> GameState:
        return replace(state, food=place_food(state.snake, state.bounds, self.rng))

    def _collect_score_result(self) -> None:
        result = self.scores.collect(self.state.run_id)
        if result is not None:
            self.state = replace(self.state, new_high_score=result)
            if result:
                logger.info("New high score: %d", self.state.score)

    def _apply_due_food(self, now: float) -> None:
        if self.state.mode is Mode.GAME_OVER:
            # Frozen for display; a restart cancels the placement.
            return
        if self.food_placement.poll(now, self.state.run_id):
            self.state = self._with_food(self.state)

    def handle_input(self, event: str) -> GameSnapshot:
        """Apply one input event through `reduce_input`."""
        before = self.state
        after = reduce_input(before, event, self.config)
        if after is before and direction_for(event) is None and event not in CONTROL_EVENTS:
            logger.debug("Ignoring unknown input %r", event)

        if after.run_id != before.run_id:
            # Restart: the old run's respawn must not land in the new one.
            self.food_placement.cancel()
            after = self._with_food(after)
            logger.info("Restarted (run %d)", after.run_id)
        elif after.mode is not before.mode:
            logger.debug("Mode %s -> %s", before.mode.value, after.mode.value)

        self.state = after
        self._collect_score_result()
        return self.snapshot()

    def advance(self, now: float) -> GameSnapshot:
        """Feed the tick source. Fires at most one tick once the interval has elapsed."""
        self.clock = now
        self._apply_due_food(now)
        self._collect_score_result()
        if self.state.mode is Mode.PLAYING and now - self.last_tick_time + TICK_TOLERANCE >= self.tick_interval:
            self.last_tick_time = now
            self._tick(now)
        return self.snapshot()

    def tick(self) -> MoveResult | None:
        """Force one tick at the current clock, ignoring the interval. None unless Playing."""
        if self.state.mode is not Mode.PLAYING:
            return None
        self.last_tick_time = self.clock
        return self._tick(self.clock)

    def _tick(self, now: float) -> MoveResult:
        state = self.state
        bounds = state.bounds

        requested: Vec3 | None = state.pending_direction
        if state.autopilot:
            # None means boxed in: hold the previous direction.
            requested = choose_autopilot_direction(state.snake, state.food, state.direction, bounds)

        result = step(state.snake, requested, state.direction, state.food, bounds)

        if result.collided:
            # Body and food stay as they were for the game-over display.
            self.state = replace(
                state,
                mode=Mode.GAME_OVER,
                direction=result.direction,
                pending_direction=result.direction,
                death_reason=result.reason,
                ticks=state.ticks + 1,
            )
            logger.info(
                "Game over (%s) at %s: score %d, length %d",
                result.reason, result.snake[0].as_tuple(), state.score, len(state.snake),
            )
            self.scores.report(state.score, state.run_id)
            return result

        food = state.food
        score = state.score
        if result.ate:
            score += self.config.score_per_food
            food = None
            if self.food_placement.delay == 0:
                food = place_food(result.snake, bounds, self.rng)
            else:
                self.food_placement.schedule(now, state.run_id)

        self.state = replace(
            state,
            snake=result.snake,
            food=food,
            direction=result.direction,
            pending_direction=result.direction,
            score=score,
            ticks=state.ticks + 1,
        )
        return result

    def snapshot(self) -> GameSnapshot:
        s = self.state
        path: tuple[Vec3, ...] = ()
        if s.show_path and s.mode is Mode.PLAYING:
            path = tuple(predict_path(s.head, s.food))
        return GameSnapshot(
            snake=s.snake,
            food=s.food,
            score=s.score,
            mode=s.mode,
            game_speed=s.game_speed,
            grid_size=s.grid_size,
            direction=s.direction,
            pending_direction=s.pending_direction,
            autopilot=s.autopilot,
            show_path=s.show_path,
            show_guidelines=s.show_guidelines,
            new_high_score=s.new_high_score,
            death_reason=s.death_reason,
            run_id=s.run_id,
            ticks=s.ticks,
            path=path,
        )

    def close(self) -> None:
        self.scores.close()
