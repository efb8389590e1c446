"""Trailing-edge coalescing for reconciliation passes.

Cancel-then-schedule is not safe to interleave: a second pass could cancel
what the first one just created. ``CoalescingRunner`` runs at most one pass at
a time; triggers that arrive meanwhile collapse into a single trailing pass
that uses the most recent inputs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class CoalescingRunner(Generic[T, R]):
    """Serialize an async job, coalescing overlapping submissions.

    The caller that starts a pass also drives any trailing pass, so its
    ``submit`` returns only once the runner is idle again. Callers that were
    coalesced all receive the trailing pass's result (or exception).
    """

    def __init__(self, job: Callable[[T], Awaitable[R]], *, name: str = "job") -> None:
        self._job = job
        self._name = name
        self._busy = False
        self._has_next = False
        self._next_inputs: T | None = None
        self._trailing: asyncio.Future[R] | None = None
        self.passes = 0

    @property
    def busy(self) -> bool:
        return self._busy

    async def submit(self, inputs: T) -> R:
        if self._busy:
            self._next_inputs = inputs
            self._has_next = True
            if self._trailing is None:
                self._trailing = asyncio.get_running_loop().create_future()
            logger.debug("%s pass in flight, coalescing trigger", self._name)
            return await asyncio.shield(self._trailing)

        self._busy = True
        try:
            return await self._run(inputs)
        finally:
            try:
                await self._drain()
            finally:
                self._busy = False
                self._abandon_trailing()

    async def _run(self, inputs: T) -> R:
        self.passes += 1
        return await self._job(inputs)

    async def _drain(self) -> None:
        while self._has_next:
            inputs = self._next_inputs
            self._next_inputs = None
            self._has_next = False
            waiter = self._trailing
            self._trailing = None
            if waiter is None:
                continue
            try:
                result = await self._run(inputs)  # type: ignore[arg-type]
            except Exception as exc:
                waiter.set_exception(exc)
            else:
                waiter.set_result(result)
            finally:
                if not waiter.done():
                    waiter.cancel()

    def _abandon_trailing(self) -> None:
        # Reached with a trigger still queued only when the driver was cancelled.
        self._has_next = False
        self._next_inputs = None
        waiter, self._trailing = self._trailing, None
        if waiter is not None and not waiter.done():
            logger.warning("%s driver cancelled, dropping coalesced trigger", self._name)
            waiter.cancel()
