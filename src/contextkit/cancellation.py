"""Cooperative cancellation shared across one context-building operation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from contextkit.exceptions import OperationCancelled

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation signal.

    Loops check ``is_cancelled`` at the top of each iteration and return the
    partial result they have. Long awaits (model calls) go through ``guard``
    so they can be abandoned mid-flight.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable`, abandoning it if the token fires first.

        Raises:
            OperationCancelled: If cancellation won the race.
        """
        task = asyncio.ensure_future(awaitable)
        if self.is_cancelled:
            task.cancel()
            raise OperationCancelled("Operation cancelled")

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise OperationCancelled("Operation cancelled")


def is_cancelled(token: CancellationToken | None) -> bool:
    return token is not None and token.is_cancelled
