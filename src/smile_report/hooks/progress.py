"""Progress callback dispatch. Callbacks may be plain functions or coroutines."""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Optional, Union

from smile_report.models import ProgressEvent

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


async def emit_progress(callback: Optional[ProgressCallback], event: ProgressEvent) -> None:
    if callback is None:
        return
    result = callback(event)
    if inspect.isawaitable(result):
        await result
