from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Batch progress display with tqdm (TTY only).

In non-TTY environments (CI, piped output) no bar is created, so logs stay
free of ANSI control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Single tqdm bar counting upsert batches."""

    def __init__(self, total_batches: int, *, description: str = "Importing batches") -> None:
        self.total_batches = total_batches
        self.description = description
        self.current_batch = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_batches,
                desc=description,
                unit="batch",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_batch(self, batch_size: int) -> None:
        self.current_batch += 1
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({batch_size} rows)")

    def finish_batch(self, **counters: Any) -> None:
        """Advance the bar and show the running counters as postfix."""
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            if counters:
                self.pbar.set_postfix(**counters)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
