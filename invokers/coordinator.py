"""
MediaAnalyzer: the UI-facing task coordinator.

Keeps at most one live request per lane. Submitting to a lane cancels the
lane's previous task and bumps its epoch; when a task finishes it publishes
only if its epoch is still current, so a superseded result can never
overwrite a newer one.

All public methods must be called from the event loop thread. Published
state is only written there.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from backends.base import ImagePrediction, SentimentResult
from backends.errors import coerce_error
from backends.image_classifier import DEFAULT_TOP_K
from invokers.lanes import Lane, LaneBoard

logger = logging.getLogger(__name__)


class MediaAnalyzer:
    def __init__(self, image_backend, sentiment_backend, *, default_top_k: int = DEFAULT_TOP_K):
        self.image_backend = image_backend
        self.sentiment_backend = sentiment_backend
        self.default_top_k = default_top_k

        self.board = LaneBoard({Lane.IMAGE: list, Lane.TEXT: lambda: None})
        self._last_error_lane: Optional[Lane] = None

    # ---------------------------
    # Published state
    # ---------------------------
    @property
    def image_predictions(self) -> List[ImagePrediction]:
        return self.board[Lane.IMAGE].result

    @property
    def sentiment(self) -> Optional[SentimentResult]:
        return self.board[Lane.TEXT].result

    @property
    def image_busy(self) -> bool:
        return self.board[Lane.IMAGE].busy

    @property
    def text_busy(self) -> bool:
        return self.board[Lane.TEXT].busy

    @property
    def is_busy(self) -> bool:
        """Single indicator: true while either lane is working."""
        return self.image_busy or self.text_busy

    @property
    def image_error(self) -> Optional[str]:
        return self.board[Lane.IMAGE].error

    @property
    def text_error(self) -> Optional[str]:
        return self.board[Lane.TEXT].error

    @property
    def error_message(self) -> Optional[str]:
        """Most recently published error that is still present."""
        if self._last_error_lane is not None:
            err = self.board[self._last_error_lane].error
            if err:
                return err
        return self.image_error or self.text_error

    def set_on_update(self, cb: Optional[Callable[[str, dict], None]]) -> None:
        self.board.set_on_update(cb)

    def snapshot(self) -> dict:
        snap = self.board.snapshot()
        snap["is_busy"] = self.is_busy
        snap["error_message"] = self.error_message
        return snap

    # ---------------------------
    # Requests
    # ---------------------------
    def classify_image(self, image, top_k: Optional[int] = None) -> asyncio.Task:
        k = self.default_top_k if top_k is None else top_k
        backend = self.image_backend
        return self.submit(Lane.IMAGE, lambda: backend.classify(image, k))

    def analyze_text(self, text: str) -> asyncio.Task:
        backend = self.sentiment_backend
        return self.submit(Lane.TEXT, lambda: backend.analyze(text))

    def submit(self, lane: Lane, make_request: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Supersede the lane's current request and start a new one."""
        # raises before any lane state changes when called off the loop
        loop = asyncio.get_running_loop()
        state = self.board[lane]
        state.cancel_task()
        epoch = state.advance()
        state.error = None
        state.busy = True
        if self._last_error_lane is lane:
            self._last_error_lane = None
        self.board.fire_update(lane)

        task = loop.create_task(self._run(lane, epoch, make_request))
        state.task = task
        logger.debug("[MediaAnalyzer] %s lane started epoch %d", lane.value, epoch)
        return task

    async def _run(self, lane: Lane, epoch: int, make_request: Callable[[], Awaitable[Any]]) -> None:
        state = self.board[lane]
        try:
            result = await make_request()
        except asyncio.CancelledError:
            logger.debug("[MediaAnalyzer] %s lane epoch %d cancelled", lane.value, epoch)
            raise
        except Exception as e:
            err = coerce_error(e)
            if not state.is_current(epoch):
                logger.debug("[MediaAnalyzer] dropping stale %s error (epoch %d)", lane.value, epoch)
                return
            logger.info("[MediaAnalyzer] %s lane failed: %s", lane.value, err.message)
            self._publish(lane, self.board.empty_result(lane), error=err.message)
            return

        if not state.is_current(epoch):
            logger.debug("[MediaAnalyzer] dropping stale %s result (epoch %d)", lane.value, epoch)
            return
        self._publish(lane, result)

    def _publish(self, lane: Lane, result: Any, error: Optional[str] = None) -> None:
        state = self.board[lane]
        state.result = result
        state.error = error
        state.busy = False
        state.task = None
        if error:
            self._last_error_lane = lane
        self.board.fire_update(lane)

    # ---------------------------
    # Cancellation / reset
    # ---------------------------
    def cancel_all(self) -> None:
        """Cancel both lanes and clear busy now, without waiting for the tasks."""
        for lane in Lane:
            state = self.board[lane]
            state.cancel_task()
            state.advance()
            state.busy = False
            self.board.fire_update(lane)

    def reset(self) -> None:
        self.cancel_all()
        for lane in Lane:
            state = self.board[lane]
            state.result = self.board.empty_result(lane)
            state.error = None
            self.board.fire_update(lane)
        self._last_error_lane = None

    def reset_image(self) -> None:
        self._reset_lane(Lane.IMAGE)

    def reset_sentiment(self) -> None:
        self._reset_lane(Lane.TEXT)

    def _reset_lane(self, lane: Lane) -> None:
        state = self.board[lane]
        state.cancel_task()
        state.advance()
        state.result = self.board.empty_result(lane)
        state.error = None
        state.busy = False
        if self._last_error_lane is lane:
            self._last_error_lane = None
        self.board.fire_update(lane)

    def close(self) -> None:
        self.cancel_all()
        for backend in (self.image_backend, self.sentiment_backend):
            close = getattr(backend, "close", None)
            if close is not None:
                close()
