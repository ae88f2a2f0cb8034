# Headless autopilot benchmark with an optional matplotlib summary plot.
from __future__ import annotations

import argparse
from collections import Counter
import logging
import os

# Keep matplotlib cache local for environments without writable home config.
LOCAL_MPLCONFIG = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".mplconfig")
os.makedirs(LOCAL_MPLCONFIG, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", LOCAL_MPLCONFIG)

from dotenv import load_dotenv
import matplotlib.pyplot as plt
import numpy as np

from game_logic import MAX_GRID_SIZE, MIN_GRID_SIZE
from utils import BenchmarkConfig, EpisodeResult, chunked_mean, run_autopilot_episode, score_summary


logger = logging.getLogger(__name__)


def _print_progress_bar(game: int, total: int, bar_length: int = 40) -> None:
    """Print a compact progress bar in the terminal."""
    total_safe = max(1, int(total))
    percent = min(1.0, max(0.0, game / total_safe))
    filled = int(bar_length * percent)
    bar = "#" * filled + "-" * (bar_length - filled)
    print(f"\rGames: |{bar}| {game}/{total_safe} ({percent * 100:.1f}%)", end="", flush=True)


def run_benchmark(cfg: BenchmarkConfig, show_progress: bool = True) -> list[EpisodeResult]:
    """Play `cfg.games` seeded autopilot games; seeds are cfg.seed, cfg.seed + 1, ..."""
    if cfg.games <= 0:
        raise ValueError("games must be > 0")
    if not (MIN_GRID_SIZE <= cfg.grid_size <= MAX_GRID_SIZE):
        raise ValueError(f"grid size must be between {MIN_GRID_SIZE} and {MAX_GRID_SIZE}")

    results: list[EpisodeResult] = []
    for game in range(1, cfg.games + 1):
        result = run_autopilot_episode(cfg, seed=cfg.seed + game - 1)
        results.append(result)
        logger.debug("Game %d: score=%d length=%d outcome=%s", game, result.score, result.length, result.outcome)
        if show_progress:
            _print_progress_bar(game, cfg.games)
    if show_progress:
        print()
    return results


def print_report(cfg: BenchmarkConfig, results: list[EpisodeResult]) -> None:
    scores = [float(r.score) for r in results]
    lengths = [float(r.length) for r in results]
    ticks = [float(r.ticks) for r in results]
    outcomes = Counter(r.outcome for r in results)

    print("=" * 60)
    print(f"AUTOPILOT BENCHMARK  grid={cfg.grid_size}^3  games={len(results)}  seed={cfg.seed}")
    print("=" * 60)
    print(f"{'Metric':<14} {'Score':>12} {'Length':>12} {'Ticks':>12}")
    print("-" * 60)
    summaries = (score_summary(scores), score_summary(lengths), score_summary(ticks))
    for key, label in (
        ("mean", "Mean"),
        ("median", "Median"),
        ("std", "Std dev"),
        ("min", "Min"),
        ("max", "Max"),
        ("p25", "25th pct"),
        ("p75", "75th pct"),
    ):
        s, l, t = (summary[key] for summary in summaries)
        print(f"{label:<14} {s:>12.2f} {l:>12.2f} {t:>12.2f}")
    print("=" * 60)
    total = max(1, len(results))
    print("Outcomes: " + ", ".join(
        f"{name} {count} ({count / total * 100:.1f}%)" for name, count in sorted(outcomes.items())
    ))


def plot_results(results: list[EpisodeResult]) -> None:
    scores = [float(r.score) for r in results]
    fig, (ax_trend, ax_hist) = plt.subplots(2, 1, figsize=(10, 8))
    fig.subplots_adjust(hspace=0.35)

    ax_trend.set_title("Autopilot Score (Average per 10 Games)")
    ax_trend.set_xlabel("Game")
    ax_trend.set_ylabel("Score")
    ax_trend.grid(alpha=0.25)
    x10, mean10 = chunked_mean(scores, chunk_size=10)
    if x10.size > 0:
        ax_trend.plot(x10, mean10, color="#1f77b4", linewidth=2.2, marker="o", markersize=3)

    ax_hist.set_title("Score Distribution")
    ax_hist.set_xlabel("Score")
    ax_hist.set_ylabel("Count")
    ax_hist.grid(alpha=0.2)
    if scores:
        ax_hist.hist(scores, bins=20, color="#44b5a4", alpha=0.85, edgecolor="#17323a")
        mean_all = float(np.mean(scores))
        ax_hist.axvline(mean_all, color="#1f77b4", linestyle="--", linewidth=1.6, label=f"Mean: {mean_all:.2f}")
        ax_hist.legend(loc="upper right")

    plt.show()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    defaults = BenchmarkConfig()
    parser = argparse.ArgumentParser(description="Run the 3D snake autopilot headlessly and summarize its scores")
    parser.add_argument("--games", type=int, default=defaults.games, help="Number of games to play")
    parser.add_argument("--grid-size", type=int, default=defaults.grid_size,
                        help=f"Cells per axis ({MIN_GRID_SIZE}-{MAX_GRID_SIZE})")
    parser.add_argument("--max-ticks", type=int, default=defaults.max_ticks, help="Tick cap per game")
    parser.add_argument("--seed", type=int, default=defaults.seed, help="Seed of the first game")
    parser.add_argument("--respawn-delay", type=float, default=defaults.food_respawn_delay,
                        help="Seconds before eaten food reappears")
    parser.add_argument("--stall-limit", type=int, default=defaults.stall_limit_factor,
                        help="Ticks per body cell without eating before a game counts as stalled")
    parser.add_argument("--plot", action="store_true", help="Show a matplotlib summary when done")
    parser.add_argument("--quiet", action="store_true", help="Hide the progress bar")
    parser.add_argument("--log-level", default=os.getenv("SNAKE3D_LOG_LEVEL", "WARNING"))
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    cfg = BenchmarkConfig(
        grid_size=args.grid_size,
        games=args.games,
        max_ticks=args.max_ticks,
        seed=args.seed,
        food_respawn_delay=args.respawn_delay,
        stall_limit_factor=args.stall_limit,
    )
    results = run_benchmark(cfg, show_progress=not args.quiet)
    print_report(cfg, results)
    if args.plot:
        plot_results(results)


if __name__ == "__main__":
    main()
