import pytest

from document_gateway.errors import InvalidPathError, RootProtectionError, ValidationError
from document_gateway.schemas import DirectoryAction, DirectoryActionRequest
from document_gateway.validation import validate_action


def make_request(**kwargs) -> DirectoryActionRequest:
    return DirectoryActionRequest(**kwargs)


@pytest.mark.parametrize("action", [DirectoryAction.DELETE, DirectoryAction.RENAME])
def test_root_protection_for_empty_paths(action):
    request = make_request(action=action.value, path="", target_path="", names=["a.pdf"], new_name="b.pdf")
    with pytest.raises(RootProtectionError):
        validate_action(request, action)


def test_root_protection_is_a_validation_error():
    assert issubclass(RootProtectionError, ValidationError)
    assert RootProtectionError().status_code == 400


def test_delete_requires_path_even_with_target_path():
    request = make_request(action="delete", path="", target_path="/Other/", names=["a.pdf"])
    with pytest.raises(ValidationError, match="Path cannot be empty"):
        validate_action(request, DirectoryAction.DELETE)


def test_delete_in_root_folder_is_allowed():
    request = make_request(action="delete", path="/", names=["a.pdf"])
    validate_action(request, DirectoryAction.DELETE)


def test_delete_requires_names():
    request = make_request(action="delete", path="/Reports/")
    with pytest.raises(ValidationError, match="At least one name"):
        validate_action(request, DirectoryAction.DELETE)


def test_rename_requires_new_name():
    request = make_request(action="rename", path="/", names=["a.pdf"])
    with pytest.raises(ValidationError, match="New name"):
        validate_action(request, DirectoryAction.RENAME)


def test_rename_rejects_new_name_with_delimiter():
    request = make_request(action="rename", path="/", name="a.pdf", new_name="../b.pdf")
    with pytest.raises(InvalidPathError):
        validate_action(request, DirectoryAction.RENAME)


def test_create_requires_name():
    request = make_request(action="create", path="/")
    with pytest.raises(ValidationError, match="Name is required"):
        validate_action(request, DirectoryAction.CREATE)


@pytest.mark.parametrize("action", [DirectoryAction.COPY, DirectoryAction.MOVE])
def test_copy_and_move_need_a_target(action):
    request = make_request(action=action.value, path="/", names=["a.pdf"])
    with pytest.raises(ValidationError, match="Target path"):
        validate_action(request, action)


def test_move_into_same_folder_is_rejected():
    request = make_request(action="move", path="/Reports", names=["a.pdf"], target_path="/Reports/")
    with pytest.raises(ValidationError, match="already in"):
        validate_action(request, DirectoryAction.MOVE)


def test_copy_folder_into_itself_is_rejected():
    request = make_request(action="copy", path="/", names=["Reports"], target_path="/Reports/2024/")
    with pytest.raises(ValidationError, match="into itself"):
        validate_action(request, DirectoryAction.COPY)


def test_traversal_in_target_path_is_rejected():
    request = make_request(action="move", path="/", names=["a.pdf"], target_path="/../elsewhere/")
    with pytest.raises(InvalidPathError):
        validate_action(request, DirectoryAction.MOVE)


def test_request_accepts_camel_case_wire_names():
    request = DirectoryActionRequest.model_validate(
        {
            "action": "search",
            "path": None,
            "names": None,
            "targetPath": "/x/",
            "searchString": "*rep*",
            "caseSensitive": True,
            "showHiddenItems": True,
            "data": [{"isFile": True}],
        }
    )
    assert request.path == ""
    assert request.names == []
    assert request.target_path == "/x/"
    assert request.search_string == "*rep*"
    assert request.case_sensitive is True
    assert request.show_hidden_items is True
