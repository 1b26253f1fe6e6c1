"""Progress bar utilities for Rich console displays."""

from __future__ import annotations

from contextlib import contextmanager

from typing import TYPE_CHECKING

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console


def create_progress(
    console: Console | None = None,
    *,
    show_time_remaining: bool = True,
    transient: bool = False,
) -> Progress:
    """Create a progress bar for a run stage.

    Args:
        console: Rich console instance (optional)
        show_time_remaining: Whether to add a time remaining estimate
        transient: Whether to clear the bar once the stage completes

    Returns:
        Progress with spinner, description, bar, M of N counter and elapsed
        time, plus time remaining when requested
    """
    columns = [
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
    ]
    if show_time_remaining:
        columns += [TextColumn("•"), TimeRemainingColumn()]
    return Progress(*columns, console=console, transient=transient)


@contextmanager
def track_progress(
    description: str,
    total: int | None,
    console: Console | None = None,
    *,
    show_time_remaining: bool = True,
) -> Iterator[tuple[Progress, TaskID]]:
    """Create a progress bar with one task and manage its lifetime.

    Args:
        description: Task description to display
        total: Total number of items, or None when unknown
        console: Rich console instance (optional)
        show_time_remaining: Whether to show time remaining estimate

    Yields:
        Tuple of (Progress instance, TaskID) for updating progress

    Example:
        ```python
        from src.helpers.progress import track_progress

        wallets = await store.wallet_addresses()
        with track_progress("Fetching rewards", total=len(wallets)) as (progress, task):
            for wallet in wallets:
                ...
                progress.update(task, advance=1)
        ```
    """
    progress = create_progress(console, show_time_remaining=show_time_remaining)
    with progress:
        task_id = progress.add_task(description, total=total)
        yield progress, task_id


__all__ = ["create_progress", "track_progress"]
