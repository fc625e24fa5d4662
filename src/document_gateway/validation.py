"""Structural checks on directory action requests, run before any backend call."""

from document_gateway.errors import RootProtectionError, ValidationError
from document_gateway.s3.keys import join_virtual, split_path, validate_name, virtual_path
from document_gateway.schemas import DirectoryAction, DirectoryActionRequest


def check_root_protection(request: DirectoryActionRequest, action: DirectoryAction) -> None:
    """`delete` and `rename` may never run with both `path` and `targetPath` empty."""
    if action in (DirectoryAction.DELETE, DirectoryAction.RENAME) and not request.path and not request.target_path:
        raise RootProtectionError()


def check_path_safety(request: DirectoryActionRequest) -> None:
    """Paths and names must stay inside the root folder."""
    split_path(request.path)
    split_path(request.target_path)
    for name in request.names:
        validate_name(name)


def validate_action(request: DirectoryActionRequest, action: DirectoryAction) -> None:
    """
    Raise a ``ValidationError`` if a mutating ``request`` may not reach the backend.

    Non-mutating actions only need ``check_path_safety``.
    """
    check_root_protection(request, action)
    check_path_safety(request)

    if action is DirectoryAction.DELETE:
        if not request.path:
            raise ValidationError("Path cannot be empty for delete operation")
        _require_names(request, action)

    elif action is DirectoryAction.RENAME:
        if not request.item_name:
            raise ValidationError("Name is required for rename operation")
        if not request.new_name:
            raise ValidationError("New name is required for rename operation")
        validate_name(request.item_name)
        validate_name(request.new_name)

    elif action is DirectoryAction.CREATE:
        if not request.item_name:
            raise ValidationError("Name is required for create operation")
        validate_name(request.item_name)

    elif action in (DirectoryAction.COPY, DirectoryAction.MOVE):
        _require_names(request, action)
        if request.target_path is None:
            raise ValidationError(f"Target path is required for {action.value} operation")
        source = virtual_path(request.path)
        target = virtual_path(request.target_path)
        if source == target:
            raise ValidationError(f"Cannot {action.value} items into the folder they are already in")
        for name in request.names:
            if target.startswith(join_virtual(request.path, name)):
                raise ValidationError(f"Cannot {action.value} folder {name} into itself")


def _require_names(request: DirectoryActionRequest, action: DirectoryAction) -> None:
    if not request.names:
        raise ValidationError(f"At least one name is required for {action.value} operation")
