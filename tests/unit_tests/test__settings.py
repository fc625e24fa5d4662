import pydantic
import pytest
from click.testing import CliRunner

from document_gateway.cli import cli
from document_gateway.config.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in ("S3_BUCKET_NAME", "ROOT_FOLDER_NAME", "LOG_LEVEL", "AWS_ENDPOINT_URL", "STREAM_CHUNK_SIZE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = Settings()
    assert settings.root_folder_name == "Files"
    assert settings.document_content_type == "application/pdf"
    assert settings.stream_chunk_size == 64 * 1024


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("S3_BUCKET_NAME", "other-bucket")
    monkeypatch.setenv("ROOT_FOLDER_NAME", "/Archive/")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("AWS_ENDPOINT_URL", "http://localhost:5000")

    settings = Settings()

    assert settings.s3_bucket_name == "other-bucket"
    assert settings.root_folder_name == "Archive"
    assert settings.log_level == "DEBUG"
    assert settings.aws_endpoint_url == "http://localhost:5000"


@pytest.mark.parametrize("root", ["", "/", "  //  "])
def test_empty_root_folder_is_rejected(root):
    with pytest.raises(pydantic.ValidationError):
        Settings(root_folder_name=root)


def test_chunk_size_has_a_floor():
    with pytest.raises(pydantic.ValidationError):
        Settings(stream_chunk_size=10)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_public_dict_masks_credentials():
    settings = Settings(aws_access_key_id="AKIAEXAMPLE", aws_secret_access_key="very-secret")
    values = settings.public_dict()
    assert values["aws_access_key_id"] == "****"
    assert values["aws_secret_access_key"] == "****"


def test_show_config_command(monkeypatch):
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "very-secret")
    monkeypatch.setenv("S3_BUCKET_NAME", "cli-bucket")

    result = CliRunner().invoke(cli, ["show-config"])

    assert result.exit_code == 0
    assert "s3_bucket_name: cli-bucket" in result.output
    assert "very-secret" not in result.output
