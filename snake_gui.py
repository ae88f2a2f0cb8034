# Tkinter player front-end: keyboard input source, after() tick source, flat XY view of the 3D grid.
from __future__ import annotations

import logging
import os
import time
import tkinter as tk

from dotenv import load_dotenv

from game_logic import (
    AUTOPILOT_TOGGLE,
    RESTART,
    SETTINGS_TOGGLE,
    GameSnapshot,
    Mode,
    SnakeConfig,
    SnakeEngine,
    event_for_key,
)
from grid3d import Vec3
from scoring import HttpScoreService, SessionUser, StaticSession


logger = logging.getLogger(__name__)

FRAME_MS = 16


def _shade(hex_color: str, factor: float) -> str:
    """Scale an #rrggbb colour towards black (factor 0) or keep it (factor 1)."""
    factor = max(0.0, min(1.0, factor))
    r, g, b = (int(hex_color[i : i + 2], 16) for i in (1, 3, 5))
    return f"#{int(r * factor):02x}{int(g * factor):02x}{int(b * factor):02x}"


def session_from_env() -> StaticSession:
    user_id = os.getenv("SNAKE3D_USER_ID")
    if not user_id:
        return StaticSession()
    return StaticSession(SessionUser(id=user_id, highest_score=int(os.getenv("SNAKE3D_USER_BEST", "0"))))


class SnakeApp:
    """Tkinter presentation layer for SnakeEngine (depth shown as brightness)."""
    BG = "#0f172a"
    BOARD_BG = "#1c2229"
    SIDEBAR_BG = "#0f1720"
    GRID_COLOR = "#293340"
    SNAKE_HEAD = "#10b981"
    SNAKE_BODY = "#059669"
    FOOD_COLOR = "#f59e0b"
    PATH_COLOR = "#e6eef7"
    TEXT_PRIMARY = "#f1f5f9"
    TEXT_MUTED = "#95a4b8"
    GAME_OVER = "#ef4444"
    HIGH_SCORE = "#ffd700"
    BORDER_COLOR = "#7f8b99"
    CELL = 32

    def __init__(self, root: tk.Tk, engine: SnakeEngine) -> None:
        self.root = root
        self.root.title("3D Snake")
        self.root.configure(bg=self.BG)
        self.engine = engine
        self.start = time.monotonic()
        self.after_id: str | None = None

        self._build_layout()
        self.root.bind("<Key>", self._on_key)
        self.root.protocol("WM_DELETE_WINDOW", self.close)
        self.draw(self.engine.snapshot())
        self._frame()

    def _build_layout(self) -> None:
        container = tk.Frame(self.root, bg=self.BG)
        container.pack(fill="both", expand=True, padx=16, pady=16)

        self.canvas = tk.Canvas(container, bg=self.BOARD_BG, highlightthickness=0, bd=0)
        self.canvas.pack(side="left", padx=(0, 16))

        sidebar = tk.Frame(container, bg=self.SIDEBAR_BG, width=320)
        sidebar.pack(side="right", fill="y")
        sidebar.pack_propagate(False)

        tk.Label(
            sidebar, text="3D Snake", fg=self.TEXT_PRIMARY, bg=self.SIDEBAR_BG,
            font=("Helvetica", 18, "bold"),
        ).pack(anchor="w", padx=16, pady=(16, 8))

        self.status_vars = [tk.StringVar() for _ in range(9)]
        for var in self.status_vars:
            tk.Label(
                sidebar, textvariable=var, fg=self.TEXT_PRIMARY, bg=self.SIDEBAR_BG,
                font=("Helvetica", 12), anchor="w",
            ).pack(fill="x", padx=16, pady=2)

        for text, event in (("Autopilot", AUTOPILOT_TOGGLE), ("Settings", SETTINGS_TOGGLE), ("Restart", RESTART)):
            tk.Button(
                sidebar, text=text, command=lambda e=event: self.send(e),
                bd=0, relief="flat", font=("Helvetica", 11, "bold"), cursor="hand2",
            ).pack(fill="x", padx=16, pady=4)

        tk.Label(
            sidebar,
            text=(
                "Arrows/WASD: X-Y plane   Q/E: into/out of screen\n"
                "P: pause   R: restart   T: autopilot\n"
                "Tab: settings   [ ]: grid   - =: speed\n"
                "F: path   G: guidelines"
            ),
            fg=self.TEXT_MUTED, bg=self.SIDEBAR_BG, justify="left", font=("Helvetica", 10),
        ).pack(anchor="w", padx=16, pady=(12, 16))

    def _on_key(self, event: tk.Event) -> str | None:
        key = event.char if event.char and event.char.isprintable() else event.keysym
        name = event_for_key(key)
        if name is None:
            return None
        self.send(name)
        return "break"  # keep Tab from moving focus

    def send(self, event_name: str) -> None:
        self.draw(self.engine.handle_input(event_name))

    def _frame(self) -> None:
        """Sample the clock, let the engine decide whether a tick is due, redraw."""
        self.draw(self.engine.advance(time.monotonic() - self.start))
        self.after_id = self.root.after(FRAME_MS, self._frame)

    def close(self) -> None:
        if self.after_id is not None:
            self.root.after_cancel(self.after_id)
            self.after_id = None
        self.engine.close()
        self.root.destroy()

    def _to_canvas(self, cell: Vec3, offset: int) -> tuple[float, float]:
        """Centre of a cell in canvas pixels; +y points up the screen."""
        return (cell.x + offset + 0.5) * self.CELL, (offset - cell.y + 0.5) * self.CELL

    def _depth(self, cell: Vec3, offset: int, span: int) -> float:
        return 0.35 + 0.65 * (cell.z + offset) / max(1, span - 1)

    def draw(self, snap: GameSnapshot) -> None:
        offset = snap.grid_size // 2
        span = 2 * offset + 1
        side = span * self.CELL
        self.canvas.configure(width=side, height=side)
        self.canvas.delete("all")

        for i in range(span + 1):
            pos = i * self.CELL
            self.canvas.create_line(0, pos, side, pos, fill=self.GRID_COLOR)
            self.canvas.create_line(pos, 0, pos, side, fill=self.GRID_COLOR)
        self.canvas.create_rectangle(1, 1, side - 1, side - 1, outline=self.BORDER_COLOR, width=2)

        if snap.show_guidelines and snap.mode is Mode.PLAYING:
            x0, y0 = self._to_canvas(snap.head, offset)
            d = snap.direction
            self.canvas.create_line(x0, y0, x0 + d.x * side, y0 - d.y * side, fill=self.GRID_COLOR, dash=(2, 4))

        if snap.path:
            points = [coord for cell in snap.path for coord in self._to_canvas(cell, offset)]
            if len(points) >= 4:
                self.canvas.create_line(*points, fill=self.PATH_COLOR, dash=(4, 4))

        if snap.food is not None:
            fx, fy = self._to_canvas(snap.food, offset)
            r = self.CELL / 2 - 4
            color = _shade(self.FOOD_COLOR, self._depth(snap.food, offset, span))
            self.canvas.create_oval(fx - r, fy - r, fx + r, fy + r, fill=color, outline="")
            self.canvas.create_text(fx, fy, text=str(snap.food.z), fill=self.BOARD_BG, font=("Helvetica", 9, "bold"))

        # Lower z first so nearer segments are drawn on top.
        segments = sorted(enumerate(snap.snake), key=lambda item: item[1].z)
        for idx, cell in segments:
            cx, cy = self._to_canvas(cell, offset)
            half = self.CELL / 2 - 2
            base = self.SNAKE_HEAD if idx == 0 else self.SNAKE_BODY
            color = _shade(base, self._depth(cell, offset, span))
            self.canvas.create_rectangle(cx - half, cy - half, cx + half, cy + half, fill=color, outline="")
            if idx == 0:
                self.canvas.create_text(cx, cy, text=str(cell.z), fill=self.TEXT_PRIMARY, font=("Helvetica", 9, "bold"))

        head = snap.head
        lines = (
            f"Score: {snap.score}",
            f"Length: {snap.length}",
            f"State: {snap.mode.value.replace('_', ' ').title()}",
            f"Speed: {snap.game_speed:.1f} ({snap.difficulty})",
            f"Grid: {snap.grid_size}x{snap.grid_size}x{snap.grid_size}",
            f"Position: x:{head.x} y:{head.y} z:{head.z}",
            f"Heading: {snap.direction_label}",
            f"Autopilot: {'On' if snap.autopilot else 'Off'}",
            "New High Score!" if snap.new_high_score else "",
        )
        for var, text in zip(self.status_vars, lines):
            var.set(text)

        if snap.mode is not Mode.PLAYING:
            self.canvas.create_rectangle(0, 0, side, side, fill="#000000", stipple="gray50", outline="")
            title, hint, color = {
                Mode.PAUSED: ("Paused", "Press P to resume", self.TEXT_PRIMARY),
                Mode.SETTINGS: ("Settings", "[ ] grid size   - = speed   Esc to close", self.TEXT_PRIMARY),
                Mode.GAME_OVER: ("Game Over", "Press R to restart", self.GAME_OVER),
            }[snap.mode]
            self.canvas.create_text(side // 2, side // 2 - 14, text=title, fill=color, font=("Helvetica", 22, "bold"))
            self.canvas.create_text(side // 2, side // 2 + 16, text=hint, fill=self.TEXT_MUTED, font=("Helvetica", 12))
            if snap.mode is Mode.GAME_OVER and snap.new_high_score:
                self.canvas.create_text(
                    side // 2, side // 2 + 44, text="New High Score!", fill=self.HIGH_SCORE,
                    font=("Helvetica", 14, "bold"),
                )


def run_player_gui() -> None:
    """Launch the 3D snake player interface."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("SNAKE3D_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    session = session_from_env()
    service = HttpScoreService.from_env(session)
    if service is None:
        logger.info("SNAKE3D_API_URL not set; scores will not be submitted")

    engine = SnakeEngine(SnakeConfig(), session=session, score_service=service)
    root = tk.Tk()
    SnakeApp(root, engine)
    root.mainloop()


if __name__ == "__main__":
    run_player_gui()
