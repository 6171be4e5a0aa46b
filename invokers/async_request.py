"""
Async request wrapper.

Turns one blocking backend call into an awaitable that runs on the backend's
own worker executor, so the event loop never blocks on inference.

The wrapper only holds a weak reference to its owner. If the owner has been
collected by the time the worker picks the call up, the await resolves with
PredictionFailed instead of hanging.

Cancelling the awaiting task does not stop the worker thread: the call runs
to completion and its result is dropped. Wasted CPU is not reclaimed.
"""

import asyncio
import logging
import weakref
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Optional

from backends.errors import AnalyzerError, PredictionFailed, coerce_error

logger = logging.getLogger(__name__)


class AsyncRequestWrapper:
    def __init__(self, owner: Any, executor: Optional[Executor] = None, *, name: str = "backend"):
        self._owner_ref = weakref.ref(owner)
        self.name = name
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"{name}-worker"
        )

    @property
    def owner_alive(self) -> bool:
        return self._owner_ref() is not None

    def _run(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        owner = self._owner_ref()
        if owner is None:
            logger.debug("[%s] owner released before work started", self.name)
            raise PredictionFailed()
        try:
            return fn(owner, *args, **kwargs)
        finally:
            del owner

    async def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run `fn(owner, *args, **kwargs)` on the worker executor.

        `fn` must not close over the owner; it receives it as first argument.
        Resolves with the return value or raises exactly one AnalyzerError.
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, self._run, fn, args, kwargs)
        except asyncio.CancelledError:
            raise
        except AnalyzerError:
            raise
        except Exception as e:
            logger.warning("[%s] inference error coerced to PredictionFailed: %r", self.name, e)
            raise coerce_error(e) from e

    def shutdown(self, wait: bool = False) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)
