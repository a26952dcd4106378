"""Cooperative iteration — walk a key snapshot one step per scheduling tick.

A Traversal is a two-state machine (RUNNING -> DONE). Each step reads one key
from the snapshot, looks its value up live, and calls the step callback with
an ``advance`` continuation. The callback either returns False to stop, or
calls advance() to have the next step scheduled. Steps never run inline:
every one of them, including the first, goes through the scheduler.

A step that neither returns False nor calls advance() stalls the traversal
for good. That is the caller's contract; it is not detected.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Generator, Sequence

from tickdict._scheduling import Scheduler

logger = logging.getLogger("tickdict.cooperative")

Advance = Callable[[], None]
StepCallback = Callable[[Any, Any, Advance], Any]


class State(enum.Enum):
    RUNNING = "running"
    DONE = "done"


class Completion:
    """Completion signal of a cooperative traversal.

    Resolves with None when the traversal finishes, unless an explicit
    completion callback was given, in which case the callback is the
    notification and this signal stays pending. Fails with the exception
    if a step callback raised.

    Awaitable from inside a running asyncio loop:
        await d.async_for_each(step)
    """

    __slots__ = ("_done", "_exception", "_callbacks")

    def __init__(self) -> None:
        self._done = False
        self._exception: BaseException | None = None
        self._callbacks: list[Callable[[Completion], None]] = []

    def done(self) -> bool:
        return self._done

    def exception(self) -> BaseException | None:
        return self._exception

    def result(self) -> None:
        if not self._done:
            raise asyncio.InvalidStateError("traversal has not completed")
        if self._exception is not None:
            raise self._exception
        return None

    def add_done_callback(self, fn: Callable[[Completion], None]) -> None:
        """Call fn(self) on completion; immediately if already done."""
        if self._done:
            fn(self)
        else:
            self._callbacks.append(fn)

    def _resolve(self) -> None:
        self._settle(None)

    def _fail(self, exc: BaseException) -> None:
        self._settle(exc)

    def _settle(self, exc: BaseException | None) -> None:
        if self._done:
            return
        self._done = True
        self._exception = exc
        callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            fn(self)

    def __await__(self) -> Generator[Any, None, None]:
        if not self._done:
            future = asyncio.get_running_loop().create_future()

            def _wake(_completion: Completion) -> None:
                if not future.done():
                    future.set_result(None)

            self.add_done_callback(_wake)
            yield from future.__await__()
        return self.result()

    def __repr__(self) -> str:
        if not self._done:
            return "Completion(pending)"
        if self._exception is not None:
            return f"Completion(failed={self._exception!r})"
        return "Completion(done)"


class Traversal:
    """Cursor over a key snapshot, driven one step per tick."""

    __slots__ = (
        "_keys", "_position", "_read", "_step_fn", "_on_complete",
        "_scheduler", "_state", "completion",
    )

    def __init__(
        self,
        keys: Sequence[Any],
        read: Callable[[Any], Any],
        step: StepCallback,
        on_complete: Callable[[], None] | None,
        scheduler: Scheduler,
    ) -> None:
        self._keys = keys
        self._position = 0
        self._read = read
        self._step_fn = step
        self._on_complete = on_complete
        self._scheduler = scheduler
        self._state = State.RUNNING
        self.completion = Completion()

    @property
    def state(self) -> State:
        return self._state

    @property
    def position(self) -> int:
        return self._position

    def start(self) -> Completion:
        """Schedule the first step and return the completion signal."""
        logger.debug("Traversal started over %d keys", len(self._keys))
        self._scheduler(self._step)
        return self.completion

    def _step(self) -> None:
        if self._state is State.DONE:
            return
        if self._position >= len(self._keys):
            self._finish()
            return

        key = self._keys[self._position]
        self._position += 1
        try:
            result = self._step_fn(key, self._read(key), self._make_advance())
        except Exception as exc:
            self._state = State.DONE
            # The scheduler reports the traceback; logging it here would duplicate it.
            logger.debug("Step callback failed on key %r: %r", key, exc)
            self.completion._fail(exc)
            raise

        if result is False:
            logger.debug(
                "Traversal stopped early at %d of %d keys",
                self._position, len(self._keys),
            )
            self._finish()

    def _make_advance(self) -> Advance:
        # One advance per step; repeat calls must not put two steps in flight.
        used = False

        def advance() -> None:
            nonlocal used
            if used or self._state is State.DONE:
                logger.debug("Ignoring advance() (used=%s, state=%s)", used, self._state.value)
                return
            used = True
            self._scheduler(self._step)

        return advance

    def _finish(self) -> None:
        self._state = State.DONE
        logger.debug("Traversal done after %d keys", self._position)
        if self._on_complete is not None:
            self._on_complete()
        else:
            self.completion._resolve()

    def __repr__(self) -> str:
        return f"Traversal({self._position}/{len(self._keys)}, {self._state.value})"
