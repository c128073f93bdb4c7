"""Asynchronous client for the persistence worker.

An explicitly constructed object with an ``open()``/``close()`` lifecycle,
handed to whoever needs the store. ``send()`` behaves like a remote call:
one request out, exactly one matching response back, paired by id.
"""

import asyncio
import itertools
import logging
from typing import Dict, Optional

from sqlalchemy.orm import sessionmaker

from ..core.config import Settings
from ..exceptions import WorkerUnavailableError
from .protocol import WorkerMessage, WorkerResponse
from .store_worker import PersistenceWorker

logger = logging.getLogger(__name__)


class WorkerClient:
    """Sends protocol messages to a PersistenceWorker and awaits the replies."""

    def __init__(self, worker: PersistenceWorker, request_timeout: Optional[float] = None):
        """
        Args:
            worker: The worker to talk to. The client owns its lifecycle.
            request_timeout: Seconds to wait for each response. None or 0
                waits forever.
        """
        self._worker = worker
        self._request_timeout = request_timeout or None
        self._ids = itertools.count()
        self._pending: Dict[int, asyncio.Future] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._open = False

    @classmethod
    def from_settings(cls, session_factory: sessionmaker, settings: Settings) -> "WorkerClient":
        """Build a client with its own worker, configured from *settings*."""
        worker = PersistenceWorker(session_factory, settings)
        return cls(worker, request_timeout=settings.worker_request_timeout)

    @property
    def is_open(self) -> bool:
        return self._open and self._worker.is_running

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def open(self) -> None:
        """Start the worker. Must be called from the event loop that will send."""
        if self._open:
            return
        self._loop = asyncio.get_running_loop()
        self._worker.start(self._on_response)
        self._open = True

    async def close(self) -> None:
        """Stop the worker and fail every request still waiting for a reply."""
        if not self._open:
            return
        self._open = False
        await asyncio.to_thread(self._worker.stop)

        for future in self._pending.values():
            if not future.done():
                future.set_exception(WorkerUnavailableError("This worker was terminated forcibly"))
        if self._pending:
            logger.warning("Worker closed with %d request(s) in flight", len(self._pending))
        self._pending.clear()

    async def __aenter__(self) -> "WorkerClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def send(self, message: WorkerMessage) -> WorkerResponse:
        """Send one request and wait for its response.

        Raises:
            WorkerUnavailableError: the client is closed, the worker stopped
                while the request was in flight, or no response arrived
                within the request timeout.
        """
        if not self.is_open:
            raise WorkerUnavailableError()

        message_id = next(self._ids)
        future = self._loop.create_future()
        self._pending[message_id] = future
        try:
            self._worker.post(message.model_copy(update={"id": message_id}).model_dump())
            if self._request_timeout:
                return await asyncio.wait_for(future, self._request_timeout)
            return await future
        except asyncio.TimeoutError as e:
            raise WorkerUnavailableError(
                f"No response to {message.type.value} within {self._request_timeout:.0f}s"
            ) from e
        finally:
            self._pending.pop(message_id, None)

    def _on_response(self, response: WorkerResponse) -> None:
        # Called on the worker thread.
        self._loop.call_soon_threadsafe(self._resolve, response)

    def _resolve(self, response: WorkerResponse) -> None:
        future = self._pending.get(response.id)
        if future is None:
            logger.debug("Dropping response %s with no pending request", response.id)
            return
        if not future.done():
            future.set_result(response)
