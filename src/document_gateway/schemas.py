####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DirectoryAction(str, Enum):
    """The closed set of directory actions."""
    READ = "read"
    CREATE = "create"
    DELETE = "delete"
    COPY = "copy"
    MOVE = "move"
    RENAME = "rename"
    SEARCH = "search"
    DETAILS = "details"


MUTATING_ACTIONS = frozenset({
    DirectoryAction.CREATE,
    DirectoryAction.DELETE,
    DirectoryAction.COPY,
    DirectoryAction.MOVE,
    DirectoryAction.RENAME,
})


class CamelModel(BaseModel):
    """Accepts both camelCase (wire) and snake_case (Python) field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DirectoryActionRequest(CamelModel):
    """Request body for `POST /documents/actions`."""
    action: str = Field(description="One of read, create, delete, copy, move, rename, search, details.")
    path: str = Field("", description="Virtual folder the action applies to; empty or `/` is the root.")
    names: List[str] = Field(default_factory=list, description="Items inside `path` the action applies to.")
    name: Optional[str] = Field(None, description="Single item name used by create and rename.")
    target_path: Optional[str] = Field(None, description="Destination folder for copy and move.")
    new_name: Optional[str] = Field(None, description="New item name for rename.")
    rename_files: List[str] = Field(
        default_factory=list,
        description="Names that copy and move may store as `name(n)` when the target already holds them.",
    )
    search_string: Optional[str] = Field(None, description="Substring to search for; `*` wildcards are ignored.")
    case_sensitive: bool = False
    show_hidden_items: bool = False
    data: Optional[Any] = Field(None, description="Opaque client metadata, passed through untouched.")
    target_data: Optional[Any] = Field(None, description="Opaque client metadata for the target folder.")

    @field_validator("path", mode="before")
    @classmethod
    def none_path_is_empty(cls, v):
        return "" if v is None else v

    @field_validator("names", "rename_files", mode="before")
    @classmethod
    def none_list_is_empty(cls, v):
        return [] if v is None else v

    @property
    def item_name(self) -> Optional[str]:
        """`name`, falling back to the first entry of `names`."""
        if self.name:
            return self.name
        return self.names[0] if self.names else None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "action": "read",
                "path": "/Reports/",
                "names": [],
                "showHiddenItems": False,
                "data": [],
            }
        }
    )


class DownloadRequest(CamelModel):
    """Request body for `POST /documents/download`."""
    path: str = ""
    names: List[str] = Field(default_factory=list)

    @field_validator("path", mode="before")
    @classmethod
    def none_path_is_empty(cls, v):
        return "" if v is None else v


class DocumentTransferRequest(CamelModel):
    """Request body for `POST /documents/fetch`."""
    document_name: Optional[str] = Field(
        None,
        description="Name of the document, relative to the root folder.",
        json_schema_extra={"example": "Reports/summary.pdf"},
    )


class FileManagerItem(BaseModel):
    """One file or folder as file-manager clients expect it."""
    name: str
    size: int = 0
    is_file: bool
    has_child: bool = False
    type: str = Field("", description="File extension with its leading dot; empty for folders.")
    date_modified: Optional[datetime] = None
    date_created: Optional[datetime] = None
    filter_path: str = Field("/", description="Virtual folder containing the item.")


class ItemDetails(BaseModel):
    """Result of the `details` action."""
    name: str
    location: str
    size: str = Field(description="Human readable size, e.g. `1.5 KB`.")
    is_file: bool
    modified: Optional[datetime] = None
    created: Optional[datetime] = None
    multiple_files: bool = False


class ErrorDetails(BaseModel):
    code: str
    message: str
    file_exists: Optional[List[str]] = Field(None, description="Names that blocked a copy or move.")


class ActionResponse(BaseModel):
    """Every action answers with a subset of these fields."""
    cwd: Optional[FileManagerItem] = None
    files: Optional[List[FileManagerItem]] = None
    details: Optional[ItemDetails] = None
    error: Optional[ErrorDetails] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cwd": {
                    "name": "Reports",
                    "size": 0,
                    "isFile": False,
                    "hasChild": False,
                    "type": "",
                    "dateModified": None,
                    "dateCreated": None,
                    "filterPath": "/",
                },
                "files": [
                    {
                        "name": "summary.pdf",
                        "size": 5120,
                        "isFile": True,
                        "hasChild": False,
                        "type": ".pdf",
                        "dateModified": "2024-01-01T00:00:00Z",
                        "dateCreated": "2024-01-01T00:00:00Z",
                        "filterPath": "/Reports/",
                    }
                ],
            }
        }
    )


class UploadDocumentResponse(CamelModel):
    """Response model for `POST /documents/upload`."""
    document_name: str
    message: str = Field(description="A message about the operation.")
