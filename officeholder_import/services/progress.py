from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Row progress display with tqdm (TTY only).

In non-TTY environments (CI, redirected output) no bar is created, so logs
stay free of control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress over the rows of one upload, one phase at a time.

    start_phase() resets the bar for "validate" / "reconcile"; advance() ticks
    one row. Every method is a no-op when disabled.
    """

    def __init__(self, total_rows: int, *, filename: str = "") -> None:
        self.total_rows = total_rows
        self.filename = filename
        self.processed = 0
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None

    def start_phase(self, phase: str) -> None:
        self.processed = 0
        if not self.enabled:
            return
        if self.pbar is not None:
            self.pbar.close()
        desc = f"{phase} ({self.filename})" if self.filename else phase
        self.pbar = tqdm(
            total=self.total_rows,
            desc=desc,
            unit="row",
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )

    def advance(self, _row: Any = None) -> None:
        """Tick one row. Accepts (and ignores) the row so it can be used as a callback."""
        self.processed += 1
        if self.pbar is not None:
            self.pbar.update(1)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
