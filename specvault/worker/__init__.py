"""Persistence worker: protocol, worker thread, and async client."""

from .protocol import MessageType, ResponseType, WorkerMessage, WorkerResponse
from .store_worker import PersistenceWorker
from .client import WorkerClient

__all__ = [
    "MessageType",
    "ResponseType",
    "WorkerMessage",
    "WorkerResponse",
    "PersistenceWorker",
    "WorkerClient",
]
