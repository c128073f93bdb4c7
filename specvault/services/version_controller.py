"""Version controller: the only caller of the persistence worker.

Orchestrates saving (full snapshot or diff), reconstruction, the
soft-delete/restore/permanent-delete lifecycle, tracked-file maintenance and
anchors. Every public method is async and returns a ``VersionResult``;
engine and protocol failures are logged and reported in the result rather
than raised. History is passed around as immutable tuples of records: the
controller never mutates a snapshot it was given, it returns a new one.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from ..core.config import Settings
from ..engine.chain import ensure_deletable, ordered_chain, reconstruct
from ..engine.compression import encode_payload
from ..engine.diffpatch import DiffPatcher
from ..engine.documents import normalize
from ..engine.semver import ensure_newer
from ..exceptions import ErrorCode, NoChangeError, ProtocolError, SpecVaultException, VersionNotFoundError
from ..schemas.anchor import AnchorData
from ..schemas.specification import NewSpecification, SpecificationRecord, TrackedFileSummary
from ..worker.client import WorkerClient
from ..worker.protocol import (
    AddAnchor,
    AddVersion,
    DeleteAnchor,
    DeleteFile,
    DeletePermanently,
    DeleteVersion,
    GetAnchors,
    GetEntryViewData,
    GetLastVersion,
    GetVersions,
    IsFileTracked,
    IsNextVersionFull,
    MessageType,
    RenameFile,
    RestoreFile,
    RestoreVersion,
    SoftDeleteFile,
    WorkerMessage,
)

logger = logging.getLogger(__name__)

Versions = Tuple[SpecificationRecord, ...]

# HTTP status for store-side failures, keyed by the code in the Error response.
_STORE_ERROR_STATUS = {
    ErrorCode.VERSION_NOT_FOUND.value: 404,
    ErrorCode.VALIDATION_ERROR.value: 400,
    ErrorCode.CHAIN_INTEGRITY.value: 409,
    ErrorCode.NO_CHANGES.value: 409,
}


@dataclass(frozen=True)
class VersionResult:
    """Outcome of a controller operation.

    ``versions`` is the history snapshot after the operation (unchanged on
    failure). ``content`` carries the operation's value: reconstructed
    document, delta, anchors, tracked-file summary, and so on.
    """
    ok: bool
    versions: Versions = ()
    record: Optional[SpecificationRecord] = None
    content: Any = None
    message: str = ""
    error: Optional[SpecVaultException] = None


class VersionController:
    """Saves, reconstructs and manages the version history of documents."""

    def __init__(self, client: WorkerClient, settings: Settings):
        self.client = client
        self.settings = settings
        self.patcher = DiffPatcher(settings.text_diff_min_length)
        # Serializes saves per path: read latest, diff, append.
        self._save_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def load_versions(self, path: str) -> VersionResult:
        """Fetch the full history of *path*, soft-deleted records included."""
        try:
            versions = await self._fetch_versions(path)
        except SpecVaultException as e:
            return self._fail("load_versions", e)
        return VersionResult(ok=True, versions=versions, message=f"{len(versions)} version(s)")

    async def save_version(
        self,
        path: str,
        content: Any,
        name: str,
        version: str,
        versions: Optional[Iterable[SpecificationRecord]] = None,
    ) -> VersionResult:
        """Save *content* as a new version of *path*.

        The first version of a path is stored as a full snapshot. Later ones
        are stored as a delta against the reconstructed latest version,
        unless the store asks for a rebaseline. Saving content identical to
        the latest version fails with NoChangeError.

        Args:
            path: Tracked document path.
            content: Parsed document (JSON-compatible value).
            name: Label for the version.
            version: MAJOR.MINOR.PATCH, above every existing version of the path.
            versions: Current history snapshot. Fetched from the store if None.
        """
        snapshot: Versions = tuple(versions) if versions is not None else ()
        lock = self._save_locks.setdefault(path, asyncio.Lock())
        try:
            async with lock:
                if versions is None:
                    snapshot = await self._fetch_versions(path)
                record = await self._append_version(snapshot, path, content, name, version)
        except SpecVaultException as e:
            return self._fail("save_version", e, snapshot)

        logger.info(
            "Saved version",
            extra={"path": path, "version": version, "version_id": record.id, "is_full": record.is_full},
        )
        return VersionResult(
            ok=True,
            versions=snapshot + (record,),
            record=record,
            message=f"Version {version} saved",
        )

    async def delete_version(self, versions: Iterable[SpecificationRecord], version_id: int) -> VersionResult:
        """Soft-delete a version. It stays in the chain for its dependents."""
        return await self._set_soft_deleted("delete_version", versions, version_id, True)

    async def restore_version(self, versions: Iterable[SpecificationRecord], version_id: int) -> VersionResult:
        """Undo a soft delete."""
        return await self._set_soft_deleted("restore_version", versions, version_id, False)

    async def delete_version_permanently(
        self, versions: Iterable[SpecificationRecord], version_id: int
    ) -> VersionResult:
        """Remove a version for good.

        Refused with ChainIntegrityError while a later diff is based on it;
        the store repeats the check authoritatively.
        """
        snapshot = tuple(versions)
        try:
            target = self._find(snapshot, version_id)
            ensure_deletable(snapshot, version_id)
            await self._call(DeletePermanently.build(id=version_id))
        except SpecVaultException as e:
            return self._fail("delete_version_permanently", e, snapshot)

        return VersionResult(
            ok=True,
            versions=tuple(r for r in snapshot if r.id != version_id),
            record=target,
            message=f"Version {target.version} deleted permanently",
        )

    async def get_version_content(
        self, versions: Iterable[SpecificationRecord], version_id: int
    ) -> VersionResult:
        """Reconstruct the document as it was when *version_id* was saved."""
        snapshot = tuple(versions)
        try:
            target = self._find(snapshot, version_id)
            content = await asyncio.to_thread(reconstruct, snapshot, target, self.patcher)
        except SpecVaultException as e:
            return self._fail("get_version_content", e, snapshot)
        return VersionResult(ok=True, versions=snapshot, record=target, content=content)

    async def diff_versions(
        self, versions: Iterable[SpecificationRecord], from_id: int, to_id: int
    ) -> VersionResult:
        """Delta turning version *from_id* into version *to_id* (None if equal)."""
        snapshot = tuple(versions)
        try:
            source = self._find(snapshot, from_id)
            target = self._find(snapshot, to_id)
            old = await asyncio.to_thread(reconstruct, snapshot, source, self.patcher)
            new = await asyncio.to_thread(reconstruct, snapshot, target, self.patcher)
            delta = await asyncio.to_thread(self.patcher.diff, old, new)
        except SpecVaultException as e:
            return self._fail("diff_versions", e, snapshot)
        return VersionResult(ok=True, versions=snapshot, record=target, content=delta)

    # ------------------------------------------------------------------
    # Tracked files
    # ------------------------------------------------------------------

    async def list_tracked_files(self) -> VersionResult:
        """Summary of every tracked path: record count and last update."""
        try:
            data = await self._call(GetEntryViewData())
        except SpecVaultException as e:
            return self._fail("list_tracked_files", e)
        summary = {path: TrackedFileSummary.model_validate(entry) for path, entry in data.items()}
        return VersionResult(ok=True, content=summary)

    async def is_file_tracked(self, path: str) -> VersionResult:
        try:
            tracked = await self._call(IsFileTracked.build(path=path))
        except SpecVaultException as e:
            return self._fail("is_file_tracked", e)
        return VersionResult(ok=True, content=bool(tracked))

    async def rename_file(self, old_path: str, new_path: str) -> VersionResult:
        """Move a whole chain, and its anchors, to *new_path*."""
        try:
            moved = await self._call(RenameFile.build(old_path=old_path, new_path=new_path))
        except SpecVaultException as e:
            return self._fail("rename_file", e)
        return VersionResult(ok=True, content=moved, message=f"Moved {moved} version(s) to '{new_path}'")

    async def delete_file(self, path: str) -> VersionResult:
        """Permanently remove a whole chain and its anchors."""
        try:
            removed = await self._call(DeleteFile.build(path=path))
        except SpecVaultException as e:
            return self._fail("delete_file", e)
        return VersionResult(ok=True, content=removed, message=f"Deleted {removed} version(s) of '{path}'")

    async def soft_delete_file(self, path: str) -> VersionResult:
        try:
            count = await self._call(SoftDeleteFile.build(path=path))
        except SpecVaultException as e:
            return self._fail("soft_delete_file", e)
        return VersionResult(ok=True, content=count)

    async def restore_file(self, path: str) -> VersionResult:
        try:
            count = await self._call(RestoreFile.build(path=path))
        except SpecVaultException as e:
            return self._fail("restore_file", e)
        return VersionResult(ok=True, content=count)

    # ------------------------------------------------------------------
    # Anchors
    # ------------------------------------------------------------------

    async def add_anchor(self, path: str, anchor: AnchorData) -> VersionResult:
        try:
            data = await self._call(AddAnchor.build(path=path, anchor=anchor))
        except SpecVaultException as e:
            return self._fail("add_anchor", e)
        return VersionResult(ok=True, content=AnchorData.model_validate(data))

    async def get_anchors(self, path: str) -> VersionResult:
        try:
            data = await self._call(GetAnchors.build(path=path))
        except SpecVaultException as e:
            return self._fail("get_anchors", e)
        anchors = tuple(AnchorData.model_validate(a) for a in data["anchors"])
        return VersionResult(ok=True, content=anchors)

    async def delete_anchor(self, path: str, line: int, pos: int) -> VersionResult:
        try:
            deleted = await self._call(DeleteAnchor.build(path=path, line=line, pos=pos))
        except SpecVaultException as e:
            return self._fail("delete_anchor", e)
        return VersionResult(ok=True, content=bool(deleted))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call(self, message: WorkerMessage) -> Any:
        """Send one request; return its data or raise ProtocolError."""
        response = await self.client.send(message)
        if response.ok:
            return response.data

        error = ProtocolError(response.error_message, message_type=message.type.value, code=response.error_code)
        error.status_code = _STORE_ERROR_STATUS.get(response.error_code, error.status_code)
        raise error

    async def _append_version(
        self, snapshot: Versions, path: str, content: Any, name: str, version: str
    ) -> SpecificationRecord:
        history = ordered_chain(snapshot, path)
        ensure_newer(version, [r.version for r in history])
        content = normalize(content)

        base_id = None
        if not history:
            payload, is_full = content, True
        else:
            previous = await asyncio.to_thread(reconstruct, history, history[-1], self.patcher)
            delta = await asyncio.to_thread(self.patcher.diff, previous, content)
            if delta is None:
                raise NoChangeError(path)
            is_full = bool(await self._call(IsNextVersionFull.build(path=path)))
            payload = content if is_full else delta
            base_id = history[-1].id

        diff = await asyncio.to_thread(encode_payload, payload, self.settings.compression_level)
        spec = NewSpecification(
            path=path,
            name=name,
            version=version,
            diff=diff,
            is_full=is_full,
            created_at=datetime.now(timezone.utc),
        )
        await self._call(AddVersion.build(spec=spec, base_id=base_id))

        data = await self._call(GetLastVersion.build(path=path))
        if data is None:
            raise ProtocolError(
                f"Saved version {version} of '{path}' could not be read back",
                message_type=MessageType.GET_LAST_VERSION.value,
            )
        return SpecificationRecord.model_validate(data)

    async def _fetch_versions(self, path: str) -> Versions:
        data = await self._call(GetVersions.build(path=path))
        return tuple(SpecificationRecord.model_validate(item) for item in data)

    async def _set_soft_deleted(
        self, operation: str, versions: Iterable[SpecificationRecord], version_id: int, deleted: bool
    ) -> VersionResult:
        snapshot = tuple(versions)
        try:
            target = self._find(snapshot, version_id)
            message = DeleteVersion if deleted else RestoreVersion
            await self._call(message.build(id=version_id))
        except SpecVaultException as e:
            return self._fail(operation, e, snapshot)

        updated = target.model_copy(update={"soft_deleted": deleted})
        return VersionResult(
            ok=True,
            versions=tuple(updated if r.id == version_id else r for r in snapshot),
            record=updated,
            message=f"Version {target.version} {'deleted' if deleted else 'restored'}",
        )

    @staticmethod
    def _find(versions: Versions, version_id: int) -> SpecificationRecord:
        for record in versions:
            if record.id == version_id:
                return record
        raise VersionNotFoundError(version_id)

    @staticmethod
    def _fail(operation: str, error: SpecVaultException, versions: Versions = ()) -> VersionResult:
        logger.error(
            f"{operation} failed: {error.message}",
            extra={"error_code": error.error_code.value, **error.details},
        )
        return VersionResult(ok=False, versions=versions, message=error.message, error=error)
