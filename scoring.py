"""
Score reporting at game over.

The engine never talks to a leaderboard directly. It reads the signed-in user
from a session provider and hands the final score to a score service through
`ScoreReporter`, which runs the call on an executor so ticking never waits on
it. Results are tagged with the run id that was current when the call was
made; a result that arrives after a restart belongs to a finished run and is
thrown away.
"""
from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
import logging
import os
from typing import Protocol

import requests


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ScoreUpdateError(Exception):
    """The score service rejected the update or could not be reached."""


@dataclass(frozen=True)
class SessionUser:
    id: str
    highest_score: int = 0


class SessionProvider(Protocol):
    @property
    def current_user(self) -> SessionUser | None: ...


class ScoreService(Protocol):
    def update_score(self, score: int) -> bool:
        """Record `score`; True when it is a new high score for the current user."""
        ...


class StaticSession:
    """Session provider with a fixed (possibly absent) user."""

    def __init__(self, user: SessionUser | None = None) -> None:
        self._user = user

    @property
    def current_user(self) -> SessionUser | None:
        return self._user

    def sign_in(self, user: SessionUser) -> None:
        self._user = user

    def sign_out(self) -> None:
        self._user = None


class InMemoryScoreService:
    """Local stand-in for the leaderboard backend, keyed by user id."""

    def __init__(self, session: SessionProvider) -> None:
        self.session = session
        self.best: dict[str, int] = {}

    def update_score(self, score: int) -> bool:
        user = self.session.current_user
        if user is None:
            raise ScoreUpdateError("Unauthorized")
        if score < 0:
            raise ScoreUpdateError("Invalid score")
        previous = max(self.best.get(user.id, 0), user.highest_score)
        if score > previous:
            self.best[user.id] = score
            return True
        return False


class HttpScoreService:
    """Client for `POST /api/scores/update` on the game's web backend."""

    def __init__(
        self,
        base_url: str,
        session: SessionProvider,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.token = token
        self.timeout = timeout
        self.http = http or requests.Session()
        # Best score seen per user id this session; the session user is not written back.
        self.known_best: dict[str, int] = {}

    @classmethod
    def from_env(cls, session: SessionProvider) -> HttpScoreService | None:
        """Build a client from SNAKE3D_API_URL / _TOKEN / _TIMEOUT; None when no URL is set."""
        base_url = os.getenv("SNAKE3D_API_URL")
        if not base_url:
            return None
        timeout = float(os.getenv("SNAKE3D_API_TIMEOUT", DEFAULT_TIMEOUT))
        return cls(base_url, session, token=os.getenv("SNAKE3D_API_TOKEN"), timeout=timeout)

    def update_score(self, score: int) -> bool:
        user = self.session.current_user
        if user is None:
            return False

        headers = {"Content-Type": "application/json"}
        cookies = None
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
            cookies = {"token": self.token}

        try:
            response = self.http.post(
                f"{self.base_url}/api/scores/update",
                json={"score": score},
                headers=headers,
                cookies=cookies,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ScoreUpdateError(f"Score update request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            raise ScoreUpdateError(data.get("error") or f"Score update failed with HTTP {response.status_code}")

        highest = data.get("highestScore")
        if not isinstance(highest, int):
            raise ScoreUpdateError(f"Malformed score update response: {data!r}")
        previous = max(self.known_best.get(user.id, 0), user.highest_score or 0)
        self.known_best[user.id] = max(previous, highest)
        return highest > previous


class ScoreReporter:
    """Fire-and-forget score submission, at most once per run id."""

    def __init__(
        self,
        service: ScoreService | None,
        session: SessionProvider | None,
        executor: Executor | None = None,
    ) -> None:
        self.service = service
        self.session = session
        self._own_executor = executor is None and service is not None
        self.executor = executor
        if self._own_executor:
            self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="score-update")
        self._inflight: dict[int, Future] = {}
        self._last_reported: int | None = None

    def report(self, score: int, run_id: int) -> bool:
        """Submit `score` for `run_id`. Returns True if a call was started."""
        # Run ids only increase, so anything at or below the last report is done.
        if self._last_reported is not None and run_id <= self._last_reported:
            return False
        if self.service is None or self.session is None or self.executor is None:
            return False
        if score <= 0:
            return False
        user = self.session.current_user
        if user is None:
            logger.debug("No signed-in user; score %d not submitted", score)
            return False

        self._last_reported = run_id
        logger.info("Submitting score %d for user %s (run %d)", score, user.id, run_id)
        self._inflight[run_id] = self.executor.submit(self.service.update_score, score)
        return True

    @property
    def pending(self) -> int:
        return sum(1 for f in self._inflight.values() if not f.done())

    def collect(self, run_id: int) -> bool | None:
        """Harvest finished calls. Returns the result for `run_id`, if it has arrived.

        Finished calls for other runs are discarded; failures are logged and
        otherwise ignored.
        """
        result: bool | None = None
        for call_run, future in list(self._inflight.items()):
            if not future.done():
                continue
            del self._inflight[call_run]
            try:
                value = bool(future.result())
            except Exception as e:
                logger.warning("Score update for run %d failed: %s", call_run, e)
                continue
            if call_run != run_id:
                logger.debug("Discarding score result from run %d (current run %d)", call_run, run_id)
                continue
            result = value
        return result

    def close(self) -> None:
        if self._own_executor and self.executor is not None:
            self.executor.shutdown(wait=False)
