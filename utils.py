# Shared headless helpers: benchmark config, autopilot episode runner, and score statistics.
from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Callable

import numpy as np

from game_logic import GameSnapshot, Mode, SnakeConfig, SnakeEngine


@dataclass
class BenchmarkConfig:
    grid_size: int = 14
    games: int = 200
    max_ticks: int = 5000
    seed: int = 0
    food_respawn_delay: float = 0.0
    stall_limit_factor: int = 50      # give up after this many ticks per body cell without eating


@dataclass(frozen=True)
class EpisodeResult:
    score: int
    length: int
    ticks: int
    outcome: str          # "wall", "self", "stalled" or "max_ticks"


def make_engine(cfg: BenchmarkConfig, seed: int) -> SnakeEngine:
    game_cfg = SnakeConfig(
        grid_size=cfg.grid_size,
        food_respawn_delay=cfg.food_respawn_delay,
        autopilot=True,
        show_path=False,
        show_guidelines=False,
        seed=seed,
    )
    return SnakeEngine(game_cfg)


def run_autopilot_episode(
    cfg: BenchmarkConfig,
    seed: int,
    render_step: Callable[[GameSnapshot], None] | None = None,
    stop_flag: threading.Event | None = None,
) -> EpisodeResult:
    """Play one game on autopilot against a virtual clock."""
    engine = make_engine(cfg, seed)

    now = 0.0
    since_food = 0
    outcome = "max_ticks"
    snap = engine.snapshot()

    try:
        for _ in range(cfg.max_ticks):
            if stop_flag and stop_flag.is_set():
                break

            old_length = snap.length
            now += engine.tick_interval
            snap = engine.advance(now)
            if render_step is not None:
                render_step(snap)

            if snap.mode is Mode.GAME_OVER:
                outcome = snap.death_reason or "self"
                break

            since_food = 0 if snap.length > old_length else since_food + 1
            if since_food > cfg.stall_limit_factor * max(1, snap.length):
                outcome = "stalled"
                break
    finally:
        engine.close()

    return EpisodeResult(score=snap.score, length=snap.length, ticks=snap.ticks, outcome=outcome)


def score_summary(values: list[float]) -> dict[str, float]:
    """Mean / median / spread of a list of scores (zeros when empty)."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return {key: 0.0 for key in ("mean", "median", "std", "min", "max", "p25", "p75")}
    return {
        "mean": float(arr.mean()),
        "median": float(np.median(arr)),
        "std": float(arr.std()),
        "min": float(arr.min()),
        "max": float(arr.max()),
        "p25": float(np.percentile(arr, 25)),
        "p75": float(np.percentile(arr, 75)),
    }


def chunked_mean(values: list[float], chunk_size: int) -> tuple[np.ndarray, np.ndarray]:
    """Compute mean value per fixed-size chunk."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")

    arr = np.asarray(values, dtype=np.float32)
    if arr.size == 0:
        empty = np.array([], dtype=np.float32)
        return empty, empty

    x_end: list[float] = []
    means: list[float] = []
    for start in range(0, arr.size, chunk_size):
        chunk = arr[start : start + chunk_size]
        x_end.append(float(start + chunk.size))
        means.append(float(np.mean(chunk)))

    return np.asarray(x_end, dtype=np.float32), np.asarray(means, dtype=np.float32)
