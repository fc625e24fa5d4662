import io

import pytest

from document_gateway.errors import BackendError
from document_gateway.s3 import client as client_module
from document_gateway.s3.client import create_s3_client, open_object_store
from tests.consts import TEST_BUCKET_NAME
from tests.fixtures.fastapi_client import make_settings


def test_client_uses_configured_timeouts_and_retries():
    settings = make_settings(s3_connect_timeout=2, s3_read_timeout=7, s3_max_attempts=5)

    s3_client = create_s3_client(settings)

    config = s3_client.meta.config
    assert config.connect_timeout == 2
    assert config.read_timeout == 7
    assert config.retries["total_max_attempts"] == 5
    s3_client.close()


def test_store_works_against_bucket(mocked_aws):
    with open_object_store(make_settings()) as store:
        store.put("Files/a.pdf", io.BytesIO(b"a"))
        assert store.bucket_name == TEST_BUCKET_NAME
        assert store.exists("Files/a.pdf")


class ClosingClient:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.mark.parametrize("failure", [None, BackendError("boom")])
def test_client_is_closed_on_every_exit(monkeypatch, failure):
    fake_client = ClosingClient()
    monkeypatch.setattr(client_module, "create_s3_client", lambda settings: fake_client)

    try:
        with open_object_store(make_settings()):
            if failure:
                raise failure
    except BackendError:
        pass

    assert fake_client.closed
