"""Colored pipeline logger — ANSI-colored console tracing of embedding tasks.

Each task the worker picks up walks through a few stages; giving every stage
its own color makes one task's trail easy to follow in a busy terminal.

Color scheme:
    🔵 Blue    — Dequeue / Fetch
    🟡 Yellow  — Chunking
    🟣 Magenta — Embedding generation
    🟢 Green   — Storage / Completion
    🟠 Cyan    — Deletion / Retry scheduling
    🔴 Red     — Errors
    ⚪ Gray    — Timing / Stats
"""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

Stage = tuple[str, str, str]


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


# ── Pipeline Stage Definitions ───────────────────────────────────────

class PipelineStage:
    """Stages of one embedding task, with colors and icons."""

    DEQUEUE = ("DEQUEUE", _Colors.BLUE, "📥")
    FETCH = ("FETCH", _Colors.BLUE, "📄")
    CHUNK = ("CHUNK", _Colors.YELLOW, "✂️")
    EMBED = ("EMBED", _Colors.MAGENTA, "🧮")
    STORE = ("STORE", _Colors.GREEN, "💾")
    DELETE = ("DELETE", _Colors.CYAN, "🗑️")
    RETRY = ("RETRY", _Colors.CYAN, "🔁")
    ERROR = ("ERROR", _Colors.RED, "❌")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "✅")


# ── PipelineLogger ───────────────────────────────────────────────────

class PipelineLogger:
    """Color-coded logger for the embedding worker.

    Usage:
        log = PipelineLogger("EmbeddingWorker")
        log.step_start(PipelineStage.DEQUEUE, "Picked up task", slug="intro")
        with log.timed_step(PipelineStage.EMBED, "Embedding 3 chunks"):
            await index.upsert_article_embeddings(article_id, chunks)

    Colors are dropped when stderr is not a terminal, so log files stay clean.
    """

    def __init__(self, component_name: str, *, use_color: bool | None = None):
        self._logger = logging.getLogger(component_name)
        self._use_color = sys.stderr.isatty() if use_color is None else use_color

    def _paint(self, color: str, text: str) -> str:
        if not self._use_color:
            return text
        return f"{color}{text}{_Colors.RESET}"

    def _with_details(self, formatted: str, kwargs: dict[str, Any]) -> str:
        if not kwargs:
            return formatted
        details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
        return f"{formatted} {self._paint(_Colors.GRAY, f'({details})')}"

    def step_start(self, stage: Stage, message: str, **kwargs: Any) -> None:
        """Log the start of a step with its stage color."""
        label, color, icon = stage
        head = self._paint(color + _Colors.BOLD, f"{icon} [{label}]")
        self._logger.info(self._with_details(f"{head} {self._paint(color, message)}", kwargs))

    def step_complete(self, stage: Stage, message: str, **kwargs: Any) -> None:
        """Log the successful completion of a step."""
        label, color, icon = stage
        head = self._paint(color, f"{icon} [{label}]")
        self._logger.info(
            self._with_details(f"{head} {self._paint(_Colors.GREEN, f'✓ {message}')}", kwargs)
        )

    def step_error(self, stage: Stage, message: str, error: BaseException | None = None) -> None:
        """Log a step error in red."""
        label, _, _ = stage
        formatted = (
            f"{self._paint(_Colors.RED + _Colors.BOLD, f'❌ [{label}]')} "
            f"{self._paint(_Colors.RED, message)}"
        )
        if error is not None:
            formatted += " " + self._paint(_Colors.DIM, f"→ {type(error).__name__}: {error}")
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        """Log additional detail (gray/dimmed)."""
        self._logger.info(self._with_details(self._paint(_Colors.GRAY, f"   ├─ {message}"), kwargs))

    def stats(self, **kwargs: Any) -> None:
        """Log statistics / timing information."""
        parts = " | ".join(f"{k}: {v}" for k, v in kwargs.items())
        self._logger.info(self._paint(_Colors.GRAY, f"   📈 {parts}"))

    @contextmanager
    def timed_step(self, stage: Stage, message: str, **kwargs: Any) -> Iterator[None]:
        """Context manager that logs start/end with elapsed time.

        Usage:
            with log.timed_step(PipelineStage.CHUNK, "Chunking article"):
                chunks = chunk_markdown(...)
        """
        self.step_start(stage, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self.step_error(stage, f"{message} — failed after {elapsed:.2f}s", error=e)
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, f"{message} — {elapsed:.2f}s", **kwargs)
