from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar per ingestion, advanced once per sheet. In non-TTY environments (CI,
piped output) the bar is disabled so log output stays free of control
sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Sheet-level progress bar.

    ``enabled=None`` auto-detects a TTY; pass ``False`` to force it off.
    """

    def __init__(
        self, total: int, *, description: str = "Parsing sheets", enabled: bool | None = None
    ) -> None:
        self.total = total
        self.description = description
        self.current = 0
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit="sheet",
                leave=False,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start(self, sheet_name: str) -> None:
        self.current += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({sheet_name})")

    def finish(self, records: int = 0) -> None:
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(records=records)
            self.pbar.set_description(self.description)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
