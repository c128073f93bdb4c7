"""Persistence worker: the only component that touches the version store.

Runs on its own thread and drains a FIFO queue, one request at a time, each
in its own database session. A request is processed to completion before the
next is dequeued, so a chain is never observed half-updated. Every request
gets exactly one response; failures become Error responses, never
exceptions crossing the boundary.

Usage:
    worker = PersistenceWorker(session_factory, settings)
    worker.start(on_response)
    worker.post(GetVersions.build(path="spec.yaml").model_copy(update={"id": 1}).model_dump())
    ...
    worker.stop()
"""

import logging
import queue
import threading
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import Settings
from ..exceptions import ErrorCode, SpecVaultException, WorkerUnavailableError
from ..repositories import AnchorRepository, SpecificationRepository
from ..schemas.anchor import AnchorData
from ..schemas.specification import SpecificationRecord
from .protocol import (
    AddAnchorData,
    AddVersionData,
    AnchorPositionData,
    EmptyData,
    IdData,
    MessageType,
    PathData,
    RenameFileData,
    WorkerResponse,
    worker_message_adapter,
)

logger = logging.getLogger(__name__)

# Seconds stop() waits for the in-flight request to finish.
STOP_TIMEOUT_SECONDS = 10.0

ResponseCallback = Callable[[WorkerResponse], None]
Handler = Callable[[Session, Any], Any]

_STOP = object()


class PersistenceWorker:
    """Serves protocol requests against the store from a dedicated thread."""

    def __init__(self, session_factory: sessionmaker, settings: Settings):
        self._session_factory = session_factory
        self._settings = settings
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._on_response: Optional[ResponseCallback] = None

        self._handlers: Dict[MessageType, Handler] = {
            MessageType.ADD_VERSION: self._add_version,
            MessageType.GET_VERSIONS: self._get_versions,
            MessageType.GET_LAST_VERSION: self._get_last_version,
            MessageType.DELETE_VERSION: self._delete_version,
            MessageType.RESTORE_VERSION: self._restore_version,
            MessageType.DELETE_PERMANENTLY: self._delete_permanently,
            MessageType.IS_NEXT_VERSION_FULL: self._is_next_version_full,
            MessageType.GET_ENTRY_VIEW_DATA: self._get_entry_view_data,
            MessageType.IS_FILE_TRACKED: self._is_file_tracked,
            MessageType.RENAME_FILE: self._rename_file,
            MessageType.DELETE_FILE: self._delete_file,
            MessageType.SOFT_DELETE_FILE: self._soft_delete_file,
            MessageType.RESTORE_FILE: self._restore_file,
            MessageType.ADD_ANCHOR: self._add_anchor,
            MessageType.GET_ANCHORS: self._get_anchors,
            MessageType.DELETE_ANCHOR: self._delete_anchor,
        }
        unhandled = set(MessageType) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No handler for message types: {sorted(t.value for t in unhandled)}")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, on_response: ResponseCallback) -> None:
        """Start the worker thread. Responses are passed to *on_response*."""
        if self.is_running:
            return
        self._on_response = on_response
        self._thread = threading.Thread(target=self._run, name="specvault-persistence", daemon=True)
        self._thread.start()
        logger.info("Persistence worker started")

    def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        """Stop after the in-flight request. Queued requests are dropped unanswered."""
        if not self.is_running:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Persistence worker did not stop within %.0fs", timeout)
        else:
            logger.info("Persistence worker stopped")
        self._thread = None

    def post(self, message: dict) -> None:
        """Enqueue a serialized request."""
        if not self.is_running:
            raise WorkerUnavailableError()
        self._queue.put(message)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            response = self.handle(item)
            try:
                self._on_response(response)
            except Exception:
                # The receiving side went away (e.g. its event loop closed).
                logger.exception("Could not deliver worker response %s", response.id)

        # Drain whatever is left so nothing waits on a dead queue.
        while not self._queue.empty():
            self._queue.get_nowait()

    def handle(self, raw: Any) -> WorkerResponse:
        """Process one serialized request and return its response."""
        message_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            message = worker_message_adapter.validate_python(raw)
        except PydanticValidationError as e:
            message_type = raw.get("type") if isinstance(raw, dict) else None
            logger.warning(
                "Rejected invalid worker message",
                extra={"message_id": message_id, "message_type": str(message_type)},
            )
            return WorkerResponse.error(
                message_id, f"Invalid message of type {message_type!r}: {e}", ErrorCode.VALIDATION_ERROR.value
            )

        handler = self._handlers[message.type]
        db = self._session_factory()
        try:
            data = handler(db, message.payload.data)
            db.commit()
            return WorkerResponse.success(message.id, data)
        except SpecVaultException as e:
            db.rollback()
            logger.warning(
                f"Worker request {message.type.value} failed: {e.message}",
                extra={"message_id": message.id, "error_code": e.error_code.value},
            )
            return WorkerResponse.error(message.id, e.message, e.error_code.value)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Database error in worker request {message.type.value}: {e}",
                extra={"message_id": message.id},
            )
            return WorkerResponse.error(message.id, f"Database error: {e}", ErrorCode.INTERNAL_ERROR.value)
        except Exception as e:
            # Answer anyway: the caller is awaiting exactly one response.
            db.rollback()
            logger.exception(f"Unexpected error in worker request {message.type.value}")
            return WorkerResponse.error(message.id, str(e), ErrorCode.INTERNAL_ERROR.value)
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Handlers: (session, payload data) -> plain response data
    # ------------------------------------------------------------------

    @staticmethod
    def _record(spec) -> dict:
        return SpecificationRecord.model_validate(spec).model_dump()

    def _add_version(self, db: Session, data: AddVersionData) -> dict:
        spec = SpecificationRepository(db).create(data.spec, base_id=data.base_id)
        logger.info(
            "Version added",
            extra={"path": spec.path, "version_id": spec.id, "version": spec.version, "is_full": spec.is_full},
        )
        return {"id": spec.id}

    def _get_versions(self, db: Session, data: PathData) -> list:
        return [self._record(s) for s in SpecificationRepository(db).get_by_path(data.path)]

    def _get_last_version(self, db: Session, data: PathData) -> Optional[dict]:
        spec = SpecificationRepository(db).get_last(data.path)
        return self._record(spec) if spec else None

    def _delete_version(self, db: Session, data: IdData) -> None:
        SpecificationRepository(db).set_soft_deleted(data.id, True)

    def _restore_version(self, db: Session, data: IdData) -> None:
        SpecificationRepository(db).set_soft_deleted(data.id, False)

    def _delete_permanently(self, db: Session, data: IdData) -> None:
        SpecificationRepository(db).permanent_delete(data.id)
        logger.info("Version permanently deleted", extra={"version_id": data.id})

    def _is_next_version_full(self, db: Session, data: PathData) -> bool:
        return SpecificationRepository(db).is_next_version_full(
            data.path, self._settings.rebaseline_interval
        )

    def _get_entry_view_data(self, db: Session, data: EmptyData) -> dict:
        return {
            path: summary.model_dump()
            for path, summary in SpecificationRepository(db).get_entry_view_data().items()
        }

    def _is_file_tracked(self, db: Session, data: PathData) -> bool:
        return SpecificationRepository(db).is_tracked(data.path)

    def _rename_file(self, db: Session, data: RenameFileData) -> int:
        moved = SpecificationRepository(db).rename_path(data.old_path, data.new_path)
        if moved:
            AnchorRepository(db).rename_path(data.old_path, data.new_path)
        return moved

    def _delete_file(self, db: Session, data: PathData) -> int:
        removed = SpecificationRepository(db).delete_path(data.path)
        AnchorRepository(db).delete_by_path(data.path)
        return removed

    def _soft_delete_file(self, db: Session, data: PathData) -> int:
        return SpecificationRepository(db).set_path_soft_deleted(data.path, True)

    def _restore_file(self, db: Session, data: PathData) -> int:
        return SpecificationRepository(db).set_path_soft_deleted(data.path, False)

    def _add_anchor(self, db: Session, data: AddAnchorData) -> dict:
        anchor = AnchorRepository(db).create(data.path, data.anchor)
        return AnchorData.model_validate(anchor).model_dump()

    def _get_anchors(self, db: Session, data: PathData) -> dict:
        anchors = AnchorRepository(db).get_by_path(data.path)
        return {"anchors": [AnchorData.model_validate(a).model_dump() for a in anchors]}

    def _delete_anchor(self, db: Session, data: AnchorPositionData) -> bool:
        return AnchorRepository(db).delete(data.path, data.line, data.pos)
