from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

from people_import.ingest.pipeline import ImportProgress


def is_tty_enabled() -> bool:
    """Progress bars only make sense on an interactive stdout."""
    return sys.stdout.isatty()


class RowProgressBar:
    """
    `on_progress` callback drawing a tqdm bar over data rows.

    Disabled in non-TTY environments (CI, pipes) to avoid control sequence spam.
    The row total is only known after tokenizing, so the bar is created on the first call.
    """

    def __init__(self, *, description: str = "Importing", enabled: bool | None = None) -> None:
        self.description = description
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: tqdm | None = None

    def __call__(self, progress: ImportProgress) -> None:
        if not self.enabled:
            return
        if self.pbar is None:
            self.pbar = tqdm(
                total=progress.total,
                desc=self.description,
                unit="row",
                leave=True,
                ncols=80,
                ascii=True,
            )
        self.pbar.update(progress.processed - self.pbar.n)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
