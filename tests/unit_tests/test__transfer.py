import io
import zipfile
from contextlib import contextmanager

import pytest

from document_gateway.errors import BackendError, NotFoundError, ValidationError
from document_gateway.transfer import ZIP_CONTENT_TYPE, download_items, open_document, upload_document
from tests.consts import TEST_PDF_CONTENT, TEST_PDF_CONTENT_TYPE, TEST_ROOT_FOLDER


class TrackingFactory:
    """Store factory that counts open and released sessions."""

    def __init__(self, store):
        self.store = store
        self.opened = 0
        self.released = 0

    @contextmanager
    def __call__(self):
        self.opened += 1
        try:
            yield self.store
        finally:
            self.released += 1


@pytest.fixture
def factory(fake_store) -> TrackingFactory:
    return TrackingFactory(fake_store)


def test_open_document_streams_bounded_chunks(factory, fake_store):
    fake_store.objects["Files/big.pdf"] = b"a" * 2500

    document = open_document(factory, "Files/big.pdf", "big.pdf", TEST_PDF_CONTENT_TYPE, chunk_size=1024)

    assert document.filename == "big.pdf"
    assert document.content_type == TEST_PDF_CONTENT_TYPE
    assert document.content_length == 2500
    assert document.etag
    assert factory.released == 0

    assert [len(chunk) for chunk in document] == [1024, 1024, 452]
    assert factory.released == 1


def test_open_missing_document_is_not_found_and_released(factory):
    with pytest.raises(NotFoundError):
        open_document(factory, "Files/missing.pdf", "missing.pdf")
    assert factory.opened == factory.released == 1


def test_open_backend_failure_propagates_and_releases(factory, fake_store):
    fake_store.objects["Files/a.pdf"] = b"a"
    fake_store.failing_operations.add("open")

    with pytest.raises(BackendError):
        open_document(factory, "Files/a.pdf", "a.pdf")
    assert factory.released == 1


def test_close_without_reading_releases_session(factory, fake_store):
    fake_store.objects["Files/a.pdf"] = TEST_PDF_CONTENT

    document = open_document(factory, "Files/a.pdf", "a.pdf")
    document.close()
    document.close()

    assert factory.released == 1


def test_download_single_file_is_not_archived(factory, fake_store):
    fake_store.objects["Files/Reports/a.pdf"] = TEST_PDF_CONTENT

    document = download_items(factory, TEST_ROOT_FOLDER, "/Reports/", ["a.pdf"], chunk_size=16)

    assert document.filename == "a.pdf"
    assert document.content_type == "application/pdf"
    assert b"".join(document) == TEST_PDF_CONTENT
    assert factory.released == 1


def test_download_several_items_builds_zip(factory, fake_store):
    fake_store.objects.update({
        "Files/a.pdf": b"aaa",
        "Files/F/": b"",
        "Files/F/sub/b.pdf": b"bbb",
    })

    document = download_items(factory, TEST_ROOT_FOLDER, "/", ["a.pdf", "F"], chunk_size=1024, spool_max_size=64)
    data = b"".join(document)

    assert document.filename == "files.zip"
    assert document.content_type == ZIP_CONTENT_TYPE
    assert document.content_length == len(data)
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert set(archive.namelist()) == {"a.pdf", "F/", "F/sub/b.pdf"}
        assert archive.read("F/sub/b.pdf") == b"bbb"
    assert factory.released == 1


def test_download_single_folder_is_named_after_it(factory, fake_store):
    fake_store.objects["Files/P/x.pdf"] = b"x"

    document = download_items(factory, TEST_ROOT_FOLDER, "/", ["P"])

    assert document.filename == "P.zip"
    with zipfile.ZipFile(io.BytesIO(b"".join(document))) as archive:
        assert archive.read("P/x.pdf") == b"x"


def test_download_missing_item_is_not_found(factory):
    with pytest.raises(NotFoundError):
        download_items(factory, TEST_ROOT_FOLDER, "/", ["ghost.pdf"])
    assert factory.released == 1


def test_download_requires_names(factory):
    with pytest.raises(ValidationError):
        download_items(factory, TEST_ROOT_FOLDER, "/", [])
    assert factory.opened == 0


def test_upload_document_writes_whole_body(fake_store):
    upload_document(fake_store, "Files/doc.pdf", io.BytesIO(TEST_PDF_CONTENT), TEST_PDF_CONTENT_TYPE)

    assert fake_store.objects["Files/doc.pdf"] == TEST_PDF_CONTENT
    assert fake_store.content_types["Files/doc.pdf"] == TEST_PDF_CONTENT_TYPE


def test_failed_upload_raises(fake_store):
    fake_store.failing_operations.add("put")

    with pytest.raises(BackendError):
        upload_document(fake_store, "Files/doc.pdf", io.BytesIO(b"x"))
    assert "Files/doc.pdf" not in fake_store.objects
