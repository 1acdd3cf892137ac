"""Callback-style access to ``Seeder.seed``.

The seeder itself only returns through its coroutine. ``schedule_seed`` wraps
that coroutine in a task (a future) and reports its outcome to an optional
``callback(error, result)``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from seedgraph.seeder.core import SeedResult, Seeder
from seedgraph.seeder.options import SeedOptions

SeedCallback = Callable[[BaseException | None, SeedResult | None], Any]


def _notify(callback: SeedCallback) -> Callable[[asyncio.Task[SeedResult]], None]:
    def on_done(task: asyncio.Task[SeedResult]) -> None:
        if task.cancelled():
            callback(asyncio.CancelledError(), None)
            return

        error = task.exception()
        if error is not None:
            callback(error, None)
        else:
            callback(None, task.result())

    return on_done


def schedule_seed(
    seeder: Seeder,
    spec: Mapping[str, Any],
    options: SeedOptions | Mapping[str, Any] | None = None,
    callback: SeedCallback | None = None,
) -> asyncio.Task[SeedResult]:
    """Start a seeding run as a task on the running event loop.

    Args:
        seeder: Seeder to run.
        spec: Seed spec.
        options: Drop policy flags.
        callback: Called exactly once with ``(error, None)`` or
            ``(None, result)`` when the task finishes.

    Returns:
        The task; awaiting it yields the result or raises the error.
    """
    task = asyncio.ensure_future(seeder.seed(spec, options))
    if callback is not None:
        task.add_done_callback(_notify(callback))
    return task
