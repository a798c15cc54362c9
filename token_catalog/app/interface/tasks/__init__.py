from __future__ import annotations

from collections.abc import Awaitable, Callable

from .domain.holder_count_deltas_task import holder_count_deltas_task as domain__holder_count_deltas_task
from .domain.import_tokens_task import import_tokens_task as domain__import_tokens_task

TaskFn = Callable[..., Awaitable[None]]

TASKS: dict[str, TaskFn] = {
    "domain__import_tokens_task": domain__import_tokens_task,
    "domain__holder_count_deltas_task": domain__holder_count_deltas_task,
}
