"""
Tests for game_logic.py - the state machine, input latching and the engine loop.
"""

from dataclasses import replace
import logging
from unittest.mock import Mock

import pytest

from game_logic import (
    GRID_GROW,
    GRID_SHRINK,
    MAX_GAME_SPEED,
    MAX_GRID_SIZE,
    MIN_GAME_SPEED,
    PAUSE,
    RESTART,
    RESUME,
    SETTINGS_CLOSE,
    SETTINGS_OPEN,
    SETTINGS_TOGGLE,
    SPEED_DOWN,
    SPEED_UP,
    AUTOPILOT_TOGGLE,
    PATH_OVERLAY_TOGGLE,
    Mode,
    SnakeConfig,
    SnakeEngine,
    difficulty_label,
    event_for_key,
    initial_state,
    reduce_input,
)
from grid3d import NEG_Y, POS_X, POS_Y, Vec3
from scoring import InMemoryScoreService, ScoreUpdateError, SessionUser, StaticSession


FAR_FOOD = Vec3(-5, -5, -5)


def cells(*coords):
    return tuple(Vec3(*c) for c in coords)


def make_engine(**overrides):
    kwargs = {"seed": 1}
    kwargs.update(overrides)
    return SnakeEngine(SnakeConfig(**kwargs))


def place(engine, **fields):
    """Overwrite parts of the engine state to set up a scenario."""
    engine.state = replace(engine.state, **fields)


def assert_valid_body(snake):
    assert len(snake) >= 1
    assert len(set(snake)) == len(snake)
    for a, b in zip(snake, snake[1:]):
        assert a.manhattan(b) == 1


class TestSnakeConfig:

    def test_defaults_validate(self):
        cfg = SnakeConfig().validated()
        assert cfg.grid_size == 14
        assert cfg.game_speed == 3.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"grid_size": 5},
            {"game_speed": 10.0},
            {"min_grid_size": 20, "max_grid_size": 10},
            {"initial_direction": (1, 1, 0)},
            {"initial_snake": ((0, 0, 0), (0, 0, 0))},
            {"initial_snake": ((9, 0, 0),)},
            {"food_respawn_delay": -0.1},
        ],
    )
    def test_invalid_settings_raise(self, overrides):
        with pytest.raises(ValueError):
            SnakeConfig(**overrides).validated()

    def test_clamping(self):
        cfg = SnakeConfig()
        assert cfg.clamp_grid_size(100) == MAX_GRID_SIZE
        assert cfg.clamp_game_speed(0.0) == MIN_GAME_SPEED


class TestKeyBindings:

    def test_movement_keys_pass_through(self):
        assert event_for_key("w") == "w"
        assert event_for_key("ArrowUp") == "ArrowUp"

    def test_control_keys(self):
        assert event_for_key("Tab") == SETTINGS_TOGGLE
        assert event_for_key("P") == PAUSE
        assert event_for_key("[") == GRID_SHRINK
        assert event_for_key("=") == SPEED_UP

    def test_unbound_key(self):
        assert event_for_key("x") is None
        assert event_for_key("F12") is None


class TestReduceInput:
    """The input reducer is a pure function of (state, event)."""

    def test_does_not_mutate_input_state(self):
        cfg = SnakeConfig()
        state = initial_state(cfg)
        paused = reduce_input(state, PAUSE, cfg)
        assert paused.mode is Mode.PAUSED
        assert state.mode is Mode.PLAYING

    def test_unknown_event_returns_same_state(self):
        cfg = SnakeConfig()
        state = initial_state(cfg)
        assert reduce_input(state, "banana", cfg) is state

    def test_settings_adjustments_ignored_outside_settings(self):
        cfg = SnakeConfig()
        state = initial_state(cfg)
        assert reduce_input(state, GRID_GROW, cfg).grid_size == cfg.grid_size
        assert reduce_input(state, SPEED_UP, cfg).game_speed == cfg.game_speed

    def test_restart_only_from_game_over(self):
        cfg = SnakeConfig()
        state = initial_state(cfg)
        assert reduce_input(state, RESTART, cfg) is state


class TestEngineStart:

    def test_initial_state(self):
        engine = make_engine()
        snap = engine.snapshot()
        assert snap.mode is Mode.PLAYING
        assert snap.snake == cells((0, 0, 0))
        assert snap.score == 0
        assert snap.food is not None
        assert snap.food not in snap.snake
        assert engine.state.bounds.contains(snap.food)

    def test_same_seed_same_food(self):
        assert make_engine(seed=9).state.food == make_engine(seed=9).state.food


class TestTicking:

    def test_tick_waits_for_interval(self):
        engine = make_engine()
        place(engine, food=FAR_FOOD)
        assert engine.advance(0.2).ticks == 0
        snap = engine.advance(1 / 3)
        assert snap.ticks == 1
        assert snap.head == Vec3(1, 0, 0)
        assert engine.advance(0.4).ticks == 1
        assert engine.advance(0.7).ticks == 2

    def test_one_tick_per_advance_even_after_a_long_gap(self):
        engine = make_engine()
        place(engine, food=FAR_FOOD)
        assert engine.advance(10.0).ticks == 1

    def test_reversal_is_ignored(self):
        engine = make_engine()
        place(engine, snake=cells((0, 0, 0), (-1, 0, 0)), food=FAR_FOOD)
        engine.handle_input("left")
        engine.tick()
        assert engine.state.head == Vec3(1, 0, 0)
        assert engine.state.direction == POS_X

    def test_latest_direction_wins(self):
        engine = make_engine()
        place(engine, food=FAR_FOOD)
        engine.handle_input("up")
        engine.handle_input("axis-out")
        engine.tick()
        assert engine.state.head == Vec3(0, 0, 1)

    def test_pending_direction_is_consumed(self):
        engine = make_engine()
        place(engine, food=FAR_FOOD)
        engine.handle_input("up")
        engine.tick()
        engine.tick()
        assert engine.state.snake[0] == Vec3(0, 2, 0)
        assert engine.state.pending_direction == POS_Y


class TestEating:

    def test_eating_grows_and_scores(self):
        engine = make_engine()
        place(engine, food=Vec3(1, 0, 0))
        engine.tick()
        snap = engine.snapshot()
        assert snap.length == 2
        assert snap.score == 10
        assert snap.food is None
        assert engine.food_placement.pending

    def test_consumed_food_is_not_eaten_twice(self):
        engine = make_engine()
        place(engine, food=Vec3(1, 0, 0))
        engine.tick()
        engine.tick()
        snap = engine.snapshot()
        assert snap.length == 2
        assert snap.score == 10

    def test_food_respawns_after_delay(self):
        engine = make_engine()
        place(engine, food=Vec3(1, 0, 0))
        engine.tick()
        assert engine.advance(0.2).food is None
        snap = engine.advance(0.3)
        assert snap.food is not None
        assert snap.food not in snap.snake
        assert not engine.food_placement.pending

    def test_zero_delay_places_immediately(self):
        engine = make_engine(food_respawn_delay=0.0)
        place(engine, food=Vec3(1, 0, 0))
        engine.tick()
        snap = engine.snapshot()
        assert snap.food is not None
        assert snap.food not in snap.snake


class TestCollisions:

    def test_boundary_collision_ends_game(self):
        engine = make_engine()
        place(engine, snake=cells((7, 0, 0)), food=FAR_FOOD)
        result = engine.tick()
        assert result.collided
        snap = engine.snapshot()
        assert snap.mode is Mode.GAME_OVER
        assert snap.death_reason == "wall"
        assert snap.snake == cells((7, 0, 0))

    def test_self_collision_ends_game(self):
        engine = make_engine()
        place(
            engine,
            snake=cells((0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)),
            direction=NEG_Y,
            pending_direction=POS_X,
            food=FAR_FOOD,
        )
        result = engine.tick()
        assert result.collided
        assert engine.state.mode is Mode.GAME_OVER
        assert engine.state.death_reason == "self"

    def test_game_over_freezes_the_board(self):
        engine = make_engine()
        place(engine, snake=cells((7, 0, 0)), food=FAR_FOOD)
        engine.tick()
        assert engine.tick() is None
        snap = engine.advance(100.0)
        assert snap.snake == cells((7, 0, 0))
        assert snap.food == FAR_FOOD
        assert snap.ticks == 1

    def test_shrinking_grid_applies_on_next_tick(self):
        engine = make_engine()
        place(engine, snake=cells((5, 0, 0)), food=FAR_FOOD)
        engine.handle_input(SETTINGS_OPEN)
        for _ in range(4):
            engine.handle_input(GRID_SHRINK)
        engine.handle_input(SETTINGS_CLOSE)
        assert engine.state.grid_size == 10
        assert engine.state.snake == cells((5, 0, 0))
        engine.tick()
        assert engine.state.mode is Mode.GAME_OVER


class TestModes:

    def test_pause_and_resume(self):
        engine = make_engine()
        place(engine, food=FAR_FOOD)
        assert engine.handle_input(PAUSE).mode is Mode.PAUSED
        assert engine.advance(5.0).ticks == 0
        assert engine.handle_input(RESUME).mode is Mode.PLAYING

    def test_pause_key_toggles(self):
        engine = make_engine()
        engine.handle_input(PAUSE)
        assert engine.handle_input(PAUSE).mode is Mode.PLAYING

    def test_direction_latched_while_paused(self):
        engine = make_engine()
        place(engine, food=FAR_FOOD)
        engine.handle_input(PAUSE)
        engine.handle_input("up")
        assert engine.state.pending_direction == POS_Y
        engine.handle_input(RESUME)
        engine.tick()
        assert engine.state.head == Vec3(0, 1, 0)

    def test_settings_return_to_playing(self):
        engine = make_engine()
        snap = engine.handle_input(SETTINGS_OPEN)
        assert snap.mode is Mode.SETTINGS
        assert engine.advance(5.0).ticks == 0
        assert engine.handle_input(SETTINGS_CLOSE).mode is Mode.PLAYING

    def test_settings_return_to_paused(self):
        engine = make_engine()
        engine.handle_input(PAUSE)
        engine.handle_input(SETTINGS_TOGGLE)
        assert engine.state.mode is Mode.SETTINGS
        assert engine.handle_input(SETTINGS_TOGGLE).mode is Mode.PAUSED

    def test_settings_adjustments_clamp(self):
        engine = make_engine()
        engine.handle_input(SETTINGS_OPEN)
        for _ in range(30):
            engine.handle_input(GRID_GROW)
            engine.handle_input(SPEED_UP)
        assert engine.state.grid_size == MAX_GRID_SIZE
        assert engine.state.game_speed == MAX_GAME_SPEED
        for _ in range(30):
            engine.handle_input(SPEED_DOWN)
        assert engine.state.game_speed == MIN_GAME_SPEED

    def test_settings_keep_snake_and_score(self):
        engine = make_engine()
        place(engine, score=30, snake=cells((2, 0, 0), (1, 0, 0)))
        engine.handle_input(SETTINGS_OPEN)
        engine.handle_input(SPEED_UP)
        snap = engine.handle_input(SETTINGS_CLOSE)
        assert snap.score == 30
        assert snap.snake == cells((2, 0, 0), (1, 0, 0))
        assert engine.tick_interval == pytest.approx(1 / 3.5)

    def test_unknown_input_is_ignored(self):
        engine = make_engine()
        before = engine.state
        engine.handle_input("banana")
        assert engine.state is before


class TestRestart:

    def _die(self, engine, score=0):
        place(engine, snake=cells((7, 0, 0)), food=FAR_FOOD, score=score)
        engine.tick()
        assert engine.state.mode is Mode.GAME_OVER

    def test_restart_resets_the_run(self):
        engine = make_engine()
        self._die(engine, score=40)
        snap = engine.handle_input(RESTART)
        assert snap.mode is Mode.PLAYING
        assert snap.score == 0
        assert snap.snake == cells((0, 0, 0))
        assert snap.direction == POS_X
        assert snap.death_reason is None
        assert snap.run_id == 1
        assert snap.food is not None and snap.food not in snap.snake

    def test_restart_keeps_settings(self):
        engine = make_engine()
        engine.handle_input(SETTINGS_OPEN)
        engine.handle_input(GRID_GROW)
        engine.handle_input(SETTINGS_CLOSE)
        self._die(engine)
        engine.handle_input(AUTOPILOT_TOGGLE)
        snap = engine.handle_input(RESTART)
        assert snap.grid_size == 15
        assert snap.autopilot is True

    def test_restart_ignored_while_playing(self):
        engine = make_engine()
        place(engine, score=20)
        assert engine.handle_input(RESTART).score == 20

    def test_pending_food_from_old_run_is_dropped(self):
        engine = make_engine()
        place(engine, food=Vec3(1, 0, 0))
        engine.tick()
        assert engine.food_placement.pending
        place(engine, snake=cells((7, 0, 0), (6, 0, 0)))
        engine.tick()
        snap = engine.handle_input(RESTART)
        food = snap.food
        assert not engine.food_placement.pending
        assert engine.advance(0.3).food == food


class TestAutopilot:

    def test_toggle_and_steer(self):
        engine = make_engine()
        place(engine, food=Vec3(0, 0, 3))
        assert engine.handle_input(AUTOPILOT_TOGGLE).autopilot is True
        engine.tick()
        assert engine.state.head == Vec3(0, 0, 1)

    def test_autopilot_overrides_player_input(self):
        engine = make_engine(autopilot=True)
        place(engine, food=Vec3(4, 0, 0))
        engine.handle_input("up")
        engine.tick()
        assert engine.state.head == Vec3(1, 0, 0)

    def test_long_run_keeps_body_invariants(self):
        engine = make_engine(seed=5, autopilot=True, food_respawn_delay=0.0, grid_size=10)
        previous_head = engine.state.head
        for _ in range(3000):
            result = engine.tick()
            if result is None or result.collided:
                break
            state = engine.state
            assert_valid_body(state.snake)
            assert state.head.manhattan(previous_head) == 1
            assert state.food not in state.snake
            previous_head = state.head
        assert engine.state.score == 10 * (len(engine.state.snake) - 1)


class TestSnapshot:

    def test_path_overlay(self):
        engine = make_engine()
        place(engine, food=Vec3(2, 3, 0))
        snap = engine.snapshot()
        assert snap.path == (Vec3(0, 0, 0), Vec3(2, 0, 0), Vec3(2, 3, 0))
        assert engine.handle_input(PATH_OVERLAY_TOGGLE).path == ()

    def test_path_hidden_unless_playing(self):
        engine = make_engine()
        place(engine, food=Vec3(2, 3, 0))
        assert engine.handle_input(PAUSE).path == ()
        assert engine.handle_input(SETTINGS_OPEN).path == ()
        engine.handle_input(SETTINGS_CLOSE)
        assert engine.handle_input(RESUME).path == (Vec3(0, 0, 0), Vec3(2, 0, 0), Vec3(2, 3, 0))

    def test_display_fields(self):
        snap = make_engine().snapshot()
        assert snap.difficulty == "Easy"
        assert snap.direction_label == "+X"
        assert snap.length == 1

    @pytest.mark.parametrize("speed, label", [(1.0, "Easy"), (3.0, "Easy"), (3.5, "Medium"), (5.0, "Hard")])
    def test_difficulty_label(self, speed, label):
        assert difficulty_label(speed) == label


class TestScoreReporting:
    """Game over reports the score once; stale results are ignored."""

    def _engine(self, executor, user=SessionUser("u1", 0), service=None):
        session = StaticSession(user)
        service = service or InMemoryScoreService(session)
        return SnakeEngine(SnakeConfig(seed=1), session=session, score_service=service, executor=executor)

    def _die(self, engine, score):
        place(engine, snake=cells((7, 0, 0)), food=FAR_FOOD, score=score)
        engine.tick()

    def test_new_high_score_flag(self, manual_executor):
        engine = self._engine(manual_executor)
        self._die(engine, 20)
        assert len(manual_executor.calls) == 1
        assert engine.snapshot().new_high_score is False
        manual_executor.run_all()
        assert engine.advance(engine.clock).new_high_score is True

    def test_reported_exactly_once(self, manual_executor):
        engine = self._engine(manual_executor)
        self._die(engine, 20)
        manual_executor.run_all()
        for t in range(1, 5):
            engine.advance(float(t))
            engine.handle_input(PAUSE)
        assert len(manual_executor.calls) == 1

    def test_score_is_passed_to_service(self, manual_executor):
        service = Mock()
        service.update_score.return_value = False
        engine = self._engine(manual_executor, service=service)
        self._die(engine, 30)
        manual_executor.run_all()
        engine.advance(1.0)
        service.update_score.assert_called_once_with(30)
        assert engine.state.new_high_score is False

    def test_stale_result_after_restart_is_ignored(self, manual_executor):
        engine = self._engine(manual_executor)
        self._die(engine, 20)
        engine.handle_input(RESTART)
        manual_executor.run_all()
        snap = engine.advance(engine.clock)
        assert snap.new_high_score is False
        assert snap.score == 0
        assert snap.run_id == 1

    def test_zero_score_is_not_reported(self, manual_executor):
        engine = self._engine(manual_executor)
        self._die(engine, 0)
        assert manual_executor.calls == []

    def test_signed_out_is_not_reported(self, manual_executor):
        engine = self._engine(manual_executor, user=None)
        self._die(engine, 50)
        assert manual_executor.calls == []

    def test_rejection_is_logged_and_ignored(self, manual_executor, caplog):
        service = Mock()
        service.update_score.side_effect = ScoreUpdateError("boom")
        engine = self._engine(manual_executor, service=service)
        self._die(engine, 20)
        manual_executor.run_all()
        with caplog.at_level(logging.WARNING, logger="scoring"):
            snap = engine.advance(1.0)
        assert snap.mode is Mode.GAME_OVER
        assert snap.new_high_score is False
        assert "boom" in caplog.text
