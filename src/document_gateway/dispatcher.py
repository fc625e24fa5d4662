"""
Directory action dispatcher.

Turns one ``DirectoryActionRequest`` into calls against an ``ObjectStore`` and
returns an ``OperationResult``; it never raises. Failures become results
through ``errors.error_result``, so backend detail is logged and not returned.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Tuple

from typing_extensions import assert_never

from document_gateway.adapters.storage import ObjectInfo, ObjectStore
from document_gateway.errors import InvalidActionError, ItemExistsError, ItemsExistError, NotFoundError, error_result
from document_gateway.normalizer import normalize
from document_gateway.s3.keys import (
    DELIMITER,
    directory_prefix,
    object_key,
    split_path,
    strip_root,
    virtual_path,
)
from document_gateway.schemas import (
    MUTATING_ACTIONS,
    ActionResponse,
    DirectoryAction,
    DirectoryActionRequest,
    FileManagerItem,
    ItemDetails,
)
from document_gateway.validation import check_path_safety, validate_action

logger = logging.getLogger(__name__)

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


@dataclass
class OperationResult:
    """Outcome of one action: the HTTP status and the normalized body."""
    status_code: int
    body: dict

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @classmethod
    def success(cls, response: ActionResponse) -> "OperationResult":
        return cls(status_code=200, body=normalize(response))

    @classmethod
    def failure(cls, exc: BaseException) -> "OperationResult":
        status_code, body = error_result(exc)
        return cls(status_code=status_code, body=body)


def parse_action(action: object) -> DirectoryAction:
    try:
        return DirectoryAction(action)
    except ValueError:
        raise InvalidActionError(action) from None


def resolve_item(store: ObjectStore, root_prefix: str, path: str, name: str) -> str:
    """Key of the file ``name`` in ``path``, or its folder prefix if it is a folder."""
    file_key = object_key(root_prefix, path, name)
    if store.exists(file_key):
        return file_key
    folder = file_key + DELIMITER
    if store.prefix_exists(folder):
        return folder
    raise NotFoundError(f"{name} not found in {virtual_path(path)}")


def format_size(size: int) -> str:
    value = float(size)
    for unit in _SIZE_UNITS:
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{size} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


class ActionDispatcher:
    """Runs directory actions against one object store under one root prefix."""

    def __init__(self, store: ObjectStore, root_prefix: str):
        self.store = store
        self.root_prefix = root_prefix

    def dispatch(self, request: DirectoryActionRequest) -> OperationResult:
        try:
            action = parse_action(request.action)
            if action in MUTATING_ACTIONS:
                validate_action(request, action)
            else:
                check_path_safety(request)
            response = self._run(action, request)
        except Exception as exc:
            return OperationResult.failure(exc)
        logger.info(f"Action '{action.value}' on '{virtual_path(request.path)}' succeeded")
        return OperationResult.success(response)

    def _run(self, action: DirectoryAction, request: DirectoryActionRequest) -> ActionResponse:
        match action:
            case DirectoryAction.READ:
                return self.read(request)
            case DirectoryAction.CREATE:
                return self.create(request)
            case DirectoryAction.DELETE:
                return self.delete(request)
            case DirectoryAction.COPY:
                return self.copy(request)
            case DirectoryAction.MOVE:
                return self.move(request)
            case DirectoryAction.RENAME:
                return self.rename(request)
            case DirectoryAction.SEARCH:
                return self.search(request)
            case DirectoryAction.DETAILS:
                return self.details(request)
            case _:
                assert_never(action)

    #####################
    # --- Actions --- #
    #####################

    def read(self, request: DirectoryActionRequest) -> ActionResponse:
        prefix = directory_prefix(self.root_prefix, request.path)
        listing = self.store.list(prefix)
        if split_path(request.path) and not listing.items and not self.store.prefix_exists(prefix):
            raise NotFoundError(f"Folder {virtual_path(request.path)} not found")

        files = [self._item(folder, has_child=self.store.has_children(folder.key)) for folder in listing.folders]
        files += [self._item(file) for file in listing.files]
        return ActionResponse(cwd=self._cwd(request.path, has_child=bool(listing.folders)), files=files)

    def create(self, request: DirectoryActionRequest) -> ActionResponse:
        name = request.item_name
        folder = directory_prefix(self.root_prefix, request.path, name)
        if self._taken(request.path, name):
            raise ItemExistsError(name)
        self.store.create_folder(folder)
        return ActionResponse(files=[self._item(self.store.head(folder))])

    def delete(self, request: DirectoryActionRequest) -> ActionResponse:
        keys = [self._resolve(request.path, name) for name in request.names]
        removed = self.store.details(keys)
        self.store.delete(keys)
        return ActionResponse(files=[self._item(info) for info in removed])

    def copy(self, request: DirectoryActionRequest) -> ActionResponse:
        files = []
        for src_key, dst_key in self._transfer_pairs(request):
            self.store.copy(src_key, dst_key)
            files.append(self._item(self._describe(dst_key)))
        return ActionResponse(files=files)

    def move(self, request: DirectoryActionRequest) -> ActionResponse:
        files = []
        for src_key, dst_key in self._transfer_pairs(request):
            if not self.store.move(src_key, dst_key):
                logger.warning(f"Move left a duplicate: {src_key} still exists next to {dst_key}")
            files.append(self._item(self._describe(dst_key)))
        return ActionResponse(files=files)

    def rename(self, request: DirectoryActionRequest) -> ActionResponse:
        key = self._resolve(request.path, request.item_name)
        is_folder = key.endswith(DELIMITER)
        if self._taken(request.path, request.new_name):
            raise ItemExistsError(request.new_name)
        new_file_key = object_key(self.root_prefix, request.path, request.new_name)
        new_key = new_file_key + DELIMITER if is_folder else new_file_key
        if not self.store.rename(key, new_key):
            logger.warning(f"Rename left a duplicate: {key} still exists next to {new_key}")
        return ActionResponse(files=[self._item(self._describe(new_key))])

    def search(self, request: DirectoryActionRequest) -> ActionResponse:
        prefix = directory_prefix(self.root_prefix, request.path)
        found = self.store.search(
            prefix,
            request.search_string or "",
            case_sensitive=request.case_sensitive,
            include_hidden=request.show_hidden_items,
        )
        return ActionResponse(cwd=self._cwd(request.path), files=[self._item(info) for info in found])

    def details(self, request: DirectoryActionRequest) -> ActionResponse:
        if request.names:
            keys = [self._resolve(request.path, name) for name in request.names]
        else:
            keys = [directory_prefix(self.root_prefix, request.path)]
        infos = self.store.details(keys)

        if len(infos) == 1:
            info = infos[0]
            at_root = not request.names and not split_path(request.path)
            return ActionResponse(
                details=ItemDetails(
                    name=self.root_prefix if at_root else info.name,
                    location=DELIMITER if at_root else strip_root(self.root_prefix, info.key) + info.name,
                    size=format_size(info.size),
                    is_file=not info.is_directory,
                    modified=info.last_modified,
                    created=info.last_modified,
                )
            )

        return ActionResponse(
            details=ItemDetails(
                name=", ".join(info.name for info in infos),
                location=virtual_path(request.path),
                size=format_size(sum(info.size for info in infos)),
                is_file=all(not info.is_directory for info in infos),
                multiple_files=True,
            )
        )

    #####################
    # --- Helpers --- #
    #####################

    def _resolve(self, path: str, name: str) -> str:
        return resolve_item(self.store, self.root_prefix, path, name)

    def _taken(self, path: str, name: str) -> bool:
        """Whether ``path`` already holds a file or a folder called ``name``."""
        file_key = object_key(self.root_prefix, path, name)
        return self.store.exists(file_key) or self.store.prefix_exists(file_key + DELIMITER)

    def _free_name(self, path: str, name: str, is_folder: bool) -> str:
        """First ``name(n)`` that is not taken in ``path``; files keep their extension."""
        stem, suffix = (name, "") if is_folder else (PurePosixPath(name).stem, PurePosixPath(name).suffix)
        counter = 1
        while self._taken(path, f"{stem}({counter}){suffix}"):
            counter += 1
        return f"{stem}({counter}){suffix}"

    def _transfer_pairs(self, request: DirectoryActionRequest) -> List[Tuple[str, str]]:
        """
        Source and destination keys for copy and move.

        Every destination is checked before anything is written. A name that
        is already taken at the target is an error unless it is listed in
        ``renameFiles``, in which case it gets the next free ``name(n)``.
        """
        pairs = []
        conflicts = []
        for name in request.names:
            src_key = self._resolve(request.path, name)
            is_folder = src_key.endswith(DELIMITER)
            target_name = name
            if self._taken(request.target_path, name):
                if name not in request.rename_files:
                    conflicts.append(name)
                    continue
                target_name = self._free_name(request.target_path, name, is_folder)
            dst_key = object_key(self.root_prefix, request.target_path, target_name)
            pairs.append((src_key, dst_key + DELIMITER if is_folder else dst_key))

        if conflicts:
            raise ItemsExistError(conflicts)
        return pairs

    def _describe(self, key: str) -> ObjectInfo:
        return self.store.details([key])[0]

    def _item(self, info: ObjectInfo, has_child: bool = False) -> FileManagerItem:
        return FileManagerItem(
            name=info.name,
            size=info.size,
            is_file=not info.is_directory,
            has_child=has_child,
            type="" if info.is_directory else PurePosixPath(info.name).suffix,
            date_modified=info.last_modified,
            date_created=info.last_modified,
            filter_path=strip_root(self.root_prefix, info.key),
        )

    def _cwd(self, path: str, has_child: bool = False) -> FileManagerItem:
        segments = split_path(path)
        return FileManagerItem(
            name=segments[-1] if segments else self.root_prefix,
            is_file=False,
            has_child=has_child,
            filter_path=virtual_path(DELIMITER.join(segments[:-1])) if segments else "",
        )
