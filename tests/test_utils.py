"""
Tests for utils.py and the headless benchmark CLI.
"""

import threading

import numpy as np
import pytest

import autopilot_benchmark
from utils import BenchmarkConfig, chunked_mean, run_autopilot_episode, score_summary


SMALL = BenchmarkConfig(grid_size=10, games=3, max_ticks=300, seed=4)


class TestAutopilotEpisode:

    def test_episode_reports_consistent_result(self):
        result = run_autopilot_episode(SMALL, seed=4)
        assert result.outcome in {"wall", "self", "stalled", "max_ticks"}
        assert 1 <= result.ticks <= SMALL.max_ticks
        assert result.score == 10 * (result.length - 1)

    def test_same_seed_same_game(self):
        assert run_autopilot_episode(SMALL, seed=8) == run_autopilot_episode(SMALL, seed=8)

    def test_render_step_sees_every_frame(self):
        frames = []
        result = run_autopilot_episode(SMALL, seed=2, render_step=frames.append)
        assert frames[-1].ticks == result.ticks
        assert len(frames) >= result.ticks

    def test_stop_flag(self):
        flag = threading.Event()
        flag.set()
        result = run_autopilot_episode(SMALL, seed=1, stop_flag=flag)
        assert result.ticks == 0
        assert result.outcome == "max_ticks"

    def test_delayed_respawn_still_scores(self):
        cfg = BenchmarkConfig(grid_size=10, max_ticks=200, food_respawn_delay=0.3)
        result = run_autopilot_episode(cfg, seed=3)
        assert result.score == 10 * (result.length - 1)


class TestStatistics:

    def test_score_summary(self):
        stats = score_summary([10, 20, 30, 40])
        assert stats["mean"] == pytest.approx(25.0)
        assert stats["median"] == pytest.approx(25.0)
        assert stats["min"] == 10.0
        assert stats["max"] == 40.0

    def test_score_summary_empty(self):
        assert score_summary([])["mean"] == 0.0

    def test_chunked_mean(self):
        x, means = chunked_mean([1, 2, 3, 4, 5], chunk_size=2)
        np.testing.assert_allclose(x, [2, 4, 5])
        np.testing.assert_allclose(means, [1.5, 3.5, 5.0])

    def test_chunked_mean_rejects_bad_chunk(self):
        with pytest.raises(ValueError):
            chunked_mean([1.0], chunk_size=0)


class TestBenchmarkCli:

    def test_run_benchmark_uses_consecutive_seeds(self):
        results = autopilot_benchmark.run_benchmark(SMALL, show_progress=False)
        assert len(results) == SMALL.games
        assert results[1] == run_autopilot_episode(SMALL, seed=SMALL.seed + 1)

    @pytest.mark.parametrize("overrides", [{"games": 0}, {"grid_size": 30}])
    def test_run_benchmark_rejects_bad_config(self, overrides):
        cfg = BenchmarkConfig(**{**SMALL.__dict__, **overrides})
        with pytest.raises(ValueError):
            autopilot_benchmark.run_benchmark(cfg, show_progress=False)

    def test_main_prints_report(self, capsys):
        autopilot_benchmark.main(["--games", "2", "--grid-size", "10", "--max-ticks", "100", "--quiet"])
        out = capsys.readouterr().out
        assert "AUTOPILOT BENCHMARK" in out
        assert "Outcomes:" in out

    def test_parse_args_defaults(self):
        args = autopilot_benchmark.parse_args([])
        assert args.games == BenchmarkConfig().games
        assert args.plot is False
