"""Request/response messages exchanged with the persistence worker.

Every request kind is its own model with a literal ``type`` tag, and
``WorkerMessage`` is the tagged union over all of them. Messages cross the
worker boundary as plain dicts and are validated again on the other side,
so nothing but data is shared between the two execution contexts.
"""

from enum import Enum
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..schemas.anchor import AnchorData
from ..schemas.specification import NewSpecification

DataT = TypeVar("DataT")


class MessageType(str, Enum):
    """Closed set of request kinds understood by the worker."""
    ADD_VERSION = "add-version"
    GET_VERSIONS = "get-versions"
    GET_LAST_VERSION = "get-last-version"
    DELETE_VERSION = "delete-version"
    RESTORE_VERSION = "restore-version"
    DELETE_PERMANENTLY = "delete-version-permanently"
    IS_NEXT_VERSION_FULL = "is-next-version-full"
    GET_ENTRY_VIEW_DATA = "get-entry-view-data"
    IS_FILE_TRACKED = "is-file-tracked"
    RENAME_FILE = "rename-file"
    DELETE_FILE = "delete-file"
    SOFT_DELETE_FILE = "soft-delete-file"
    RESTORE_FILE = "restore-file"
    ADD_ANCHOR = "add-anchor"
    GET_ANCHORS = "get-anchors"
    DELETE_ANCHOR = "delete-anchor"


class ResponseType(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class Payload(BaseModel, Generic[DataT]):
    data: DataT


# ---------------------------------------------------------------------------
# Payload data shapes
# ---------------------------------------------------------------------------


class EmptyData(BaseModel):
    pass


class PathData(BaseModel):
    path: str


class IdData(BaseModel):
    id: int


class AddVersionData(BaseModel):
    spec: NewSpecification
    # Id of the record a diff was computed against; unused for full records.
    base_id: Optional[int] = None


class RenameFileData(BaseModel):
    old_path: str
    new_path: str


class AddAnchorData(BaseModel):
    path: str
    anchor: AnchorData


class AnchorPositionData(BaseModel):
    path: str
    line: int
    pos: int


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class _Message(BaseModel):
    """Common envelope. ``id`` is assigned by the client when sending."""
    id: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def build(cls, **data: Any):
        """Construct a message from its payload data fields."""
        return cls.model_validate({"payload": {"data": data}})


class AddVersion(_Message):
    type: Literal[MessageType.ADD_VERSION] = MessageType.ADD_VERSION
    payload: Payload[AddVersionData]


class GetVersions(_Message):
    type: Literal[MessageType.GET_VERSIONS] = MessageType.GET_VERSIONS
    payload: Payload[PathData]


class GetLastVersion(_Message):
    type: Literal[MessageType.GET_LAST_VERSION] = MessageType.GET_LAST_VERSION
    payload: Payload[PathData]


class DeleteVersion(_Message):
    """Soft delete."""
    type: Literal[MessageType.DELETE_VERSION] = MessageType.DELETE_VERSION
    payload: Payload[IdData]


class RestoreVersion(_Message):
    type: Literal[MessageType.RESTORE_VERSION] = MessageType.RESTORE_VERSION
    payload: Payload[IdData]


class DeletePermanently(_Message):
    type: Literal[MessageType.DELETE_PERMANENTLY] = MessageType.DELETE_PERMANENTLY
    payload: Payload[IdData]


class IsNextVersionFull(_Message):
    type: Literal[MessageType.IS_NEXT_VERSION_FULL] = MessageType.IS_NEXT_VERSION_FULL
    payload: Payload[PathData]


class GetEntryViewData(_Message):
    type: Literal[MessageType.GET_ENTRY_VIEW_DATA] = MessageType.GET_ENTRY_VIEW_DATA
    payload: Payload[EmptyData] = Payload[EmptyData](data=EmptyData())


class IsFileTracked(_Message):
    type: Literal[MessageType.IS_FILE_TRACKED] = MessageType.IS_FILE_TRACKED
    payload: Payload[PathData]


class RenameFile(_Message):
    type: Literal[MessageType.RENAME_FILE] = MessageType.RENAME_FILE
    payload: Payload[RenameFileData]


class DeleteFile(_Message):
    type: Literal[MessageType.DELETE_FILE] = MessageType.DELETE_FILE
    payload: Payload[PathData]


class SoftDeleteFile(_Message):
    type: Literal[MessageType.SOFT_DELETE_FILE] = MessageType.SOFT_DELETE_FILE
    payload: Payload[PathData]


class RestoreFile(_Message):
    type: Literal[MessageType.RESTORE_FILE] = MessageType.RESTORE_FILE
    payload: Payload[PathData]


class AddAnchor(_Message):
    type: Literal[MessageType.ADD_ANCHOR] = MessageType.ADD_ANCHOR
    payload: Payload[AddAnchorData]


class GetAnchors(_Message):
    type: Literal[MessageType.GET_ANCHORS] = MessageType.GET_ANCHORS
    payload: Payload[PathData]


class DeleteAnchor(_Message):
    type: Literal[MessageType.DELETE_ANCHOR] = MessageType.DELETE_ANCHOR
    payload: Payload[AnchorPositionData]


WorkerMessage = Annotated[
    Union[
        AddVersion,
        GetVersions,
        GetLastVersion,
        DeleteVersion,
        RestoreVersion,
        DeletePermanently,
        IsNextVersionFull,
        GetEntryViewData,
        IsFileTracked,
        RenameFile,
        DeleteFile,
        SoftDeleteFile,
        RestoreFile,
        AddAnchor,
        GetAnchors,
        DeleteAnchor,
    ],
    Field(discriminator="type"),
]

worker_message_adapter: TypeAdapter = TypeAdapter(WorkerMessage)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class WorkerResponse(BaseModel):
    """Answer to exactly one request, paired by ``id``."""
    id: Optional[int] = None
    type: ResponseType
    payload: Optional[Payload[Any]] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def success(cls, message_id: Optional[int], data: Any = None) -> "WorkerResponse":
        return cls(id=message_id, type=ResponseType.SUCCESS, payload=Payload[Any](data=data))

    @classmethod
    def error(cls, message_id: Optional[int], message: str, code: str) -> "WorkerResponse":
        return cls(
            id=message_id,
            type=ResponseType.ERROR,
            payload=Payload[Any](data={"message": message, "code": code}),
        )

    @property
    def ok(self) -> bool:
        return self.type == ResponseType.SUCCESS

    @property
    def data(self) -> Any:
        return self.payload.data if self.payload else None

    @property
    def error_message(self) -> str:
        data = self.data
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return "Unknown worker error"

    @property
    def error_code(self) -> Optional[str]:
        data = self.data
        return data.get("code") if isinstance(data, dict) else None
