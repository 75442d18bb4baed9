"""Request id allocation and the pending-request registry.

Both objects are owned by a single bridge and are only touched from its event
loop. Every method here runs without awaiting, so each call is atomic with
respect to the HTTP handlers, the response dispatcher and the deadline timers.
"""

import asyncio
from dataclasses import dataclass

from .errors import (
    DuplicateRequestError,
    IdentifierExhaustedError,
    PendingLimitError,
    RequestTimeoutError,
)
from .logging import get_logger
from .models import ResponseEvent

logger = get_logger(__name__)

# Largest integer a JSON peer can represent exactly.
MAX_REQUEST_ID = 2**53 - 1


class IdAllocator:
    """Monotonically increasing request id counter."""

    def __init__(self, start: int = 1, limit: int = MAX_REQUEST_ID) -> None:
        if start < 1:
            raise ValueError("request ids start at 1 or above")
        self._next_id = start
        self._limit = limit

    def allocate(self) -> int:
        """Return the next unused request id."""
        request_id = self._next_id
        if request_id > self._limit:
            raise IdentifierExhaustedError(f"Request id counter exceeded {self._limit}")
        self._next_id = request_id + 1
        return request_id

    @property
    def issued(self) -> int:
        """Number of ids handed out so far."""
        return self._next_id - 1


@dataclass(frozen=True)
class PendingEntry:
    """Bookkeeping for one request waiting on its reply."""

    request_id: int
    completion: asyncio.Future[ResponseEvent]
    deadline: float
    timer: asyncio.TimerHandle


class CorrelationTable:
    """Maps in-flight request ids to the futures their handlers await."""

    def __init__(self, max_pending: int | None = None) -> None:
        self._entries: dict[int, PendingEntry] = {}
        self._max_pending = max_pending

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def register(
        self,
        request_id: int,
        completion: asyncio.Future[ResponseEvent],
        deadline: float,
    ) -> None:
        """
        Register a pending request and arm its deadline timer.

        Args:
            request_id: Allocator-issued request id
            completion: Future fulfilled by resolve, cancel or drain
            deadline: Absolute event loop time at which the request times out

        Raises:
            DuplicateRequestError: If the id is already pending
            PendingLimitError: If the table is at capacity
        """
        if request_id in self._entries:
            raise DuplicateRequestError(f"Request {request_id} is already pending")
        if self._max_pending is not None and len(self._entries) >= self._max_pending:
            raise PendingLimitError(f"{len(self._entries)} requests already pending")

        timer = completion.get_loop().call_at(deadline, self._expire, request_id)
        self._entries[request_id] = PendingEntry(request_id, completion, deadline, timer)

    def resolve(self, request_id: int, value: ResponseEvent) -> bool:
        """Fulfil a pending request with its response. Returns False if it is no longer pending."""
        entry = self._remove(request_id)
        if entry is None:
            return False
        if not entry.completion.done():
            entry.completion.set_result(value)
        return True

    def cancel(self, request_id: int) -> bool:
        """Fail a pending request with a timeout. Returns False if it is no longer pending."""
        entry = self._remove(request_id)
        if entry is None:
            return False
        if not entry.completion.done():
            entry.completion.set_exception(RequestTimeoutError(request_id))
        return True

    def discard(self, request_id: int) -> bool:
        """Drop a pending request without fulfilling it."""
        return self._remove(request_id) is not None

    def drain(self) -> list[asyncio.Future[ResponseEvent]]:
        """Empty the table and return every completion that is still waiting."""
        entries = list(self._entries.values())
        self._entries.clear()

        completions = []
        for entry in entries:
            entry.timer.cancel()
            if not entry.completion.done():
                completions.append(entry.completion)
        return completions

    def _remove(self, request_id: int) -> PendingEntry | None:
        entry = self._entries.pop(request_id, None)
        if entry is not None:
            entry.timer.cancel()
        return entry

    def _expire(self, request_id: int) -> None:
        if self.cancel(request_id):
            logger.warning(f"Request {request_id} timed out waiting for the peer")
