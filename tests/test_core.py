"""Tests for settings, error mapping and log formatting."""

import json
import logging
import sys

import pytest

from repo_analyzer.api.errors import status_code_for
from repo_analyzer.core.config import Settings
from repo_analyzer.core.exceptions import (
    AuthError,
    GatewayError,
    InvariantError,
    MethodError,
    NotFoundError,
    PayloadError,
    StorageError,
    UploadError,
)
from repo_analyzer.core.logging import CloudLoggingFormatter, object_key_context


def test_auth_enabled_by_default():
    settings = Settings(_env_file=None)

    assert settings.AUTH_DISABLED is False
    assert settings.max_upload_bytes == 10 * 1024 * 1024


def test_public_base_url_falls_back_to_port():
    assert Settings(_env_file=None, PORT=8080).public_base_url == "http://localhost:8080"
    assert (
        Settings(_env_file=None, PUBLIC_BASE_URL="https://cdn.example.com/").public_base_url
        == "https://cdn.example.com"
    )


@pytest.mark.parametrize(
    "exc, expected",
    [
        (PayloadError("bad"), 400),
        (AuthError("no"), 401),
        (NotFoundError("gone"), 404),
        (MethodError("wrong"), 405),
        (StorageError("down"), 500),
        (UploadError("failed"), 500),
        (InvariantError("broken"), 500),
        (GatewayError("other"), 500),
    ],
)
def test_status_code_mapping(exc, expected):
    assert status_code_for(exc) == expected


def test_subclass_inherits_status_code():
    class EmptyFileError(PayloadError):
        pass

    assert status_code_for(EmptyFileError("empty")) == 400


def test_error_message_defaults_to_class_name():
    assert NotFoundError().message == "NotFoundError"


def _record(msg, level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="repo_analyzer.test",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_single_line_json():
    line = CloudLoggingFormatter().format(_record("File uploaded", size_bytes=10))

    assert "\n" not in line
    entry = json.loads(line)
    assert entry["severity"] == "INFO"
    assert entry["message"] == "File uploaded"
    assert entry["logger"] == "repo_analyzer.test"
    assert entry["size_bytes"] == 10
    assert entry["timestamp"].endswith("Z")


def test_formatter_includes_object_key_context():
    token = object_key_context.set("reports/a.json")
    try:
        entry = json.loads(CloudLoggingFormatter().format(_record("Uploading")))
    finally:
        object_key_context.reset(token)

    assert entry["object_key"] == "reports/a.json"


def test_formatter_includes_exception():
    try:
        raise StorageError("bucket missing")
    except StorageError:
        record = _record("Upload failed", level=logging.ERROR, exc_info=sys.exc_info())

    entry = json.loads(CloudLoggingFormatter().format(record))

    assert entry["severity"] == "ERROR"
    assert entry["exception_type"] == "StorageError"
    assert entry["exception_message"] == "bucket missing"
    assert "Traceback" in entry["exception"]
