"""Tests for the error normalizer and exception hierarchy."""

from __future__ import annotations

import errno
import socket

import pytest

from rover.fs.errors import ErrorKind, error_code, filename_hint_key, normalize_error
from rover.fs.exceptions import BackendError, RoverError, SessionError

# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class TestHierarchy:
    def test_subclasses(self):
        assert issubclass(BackendError, RoverError)
        assert issubclass(SessionError, RoverError)

    def test_backend_error_fields(self):
        err = BackendError("bad", code="BAD_FILENAME", path="/x", new_name="a/b")
        assert str(err) == "bad"
        assert err.code == "BAD_FILENAME"
        assert err.path == "/x"
        assert err.new_name == "a/b"

    def test_session_error_repr(self):
        err = SessionError(ErrorKind.NOT_FOUND, "ERRORS.ENOENT", code="ENOENT")
        assert "NOT_FOUND" in repr(err)
        assert err.params == {}


# ---------------------------------------------------------------------------
# Code extraction
# ---------------------------------------------------------------------------


class TestErrorCode:
    def test_backend_code(self):
        assert error_code(BackendError(code="ENOENT")) == "ENOENT"

    def test_numeric_string_folded(self):
        assert error_code(BackendError(code="530")) == 530

    def test_missing_code(self):
        assert error_code(BackendError()) == "UNKNOWN"
        assert error_code(ValueError("boom")) == "UNKNOWN"

    def test_oserror_errno(self):
        assert error_code(FileNotFoundError(errno.ENOENT, "nope")) == "ENOENT"
        assert error_code(ConnectionRefusedError(errno.ECONNREFUSED, "no")) == "ECONNREFUSED"

    def test_resolver_error(self):
        assert error_code(socket.gaierror(socket.EAI_NONAME, "unknown host")) == "ENOTFOUND"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalize:
    @pytest.mark.parametrize(
        ("code", "kind", "key"),
        [
            ("ENOTFOUND", ErrorKind.HOST_NOT_FOUND, "ERRORS.ENOTFOUND"),
            ("ECONNREFUSED", ErrorKind.CONNECTION_REFUSED, "ERRORS.ECONNREFUSED"),
            ("ENOENT", ErrorKind.NOT_FOUND, "ERRORS.ENOENT"),
            ("EPERM", ErrorKind.PERMISSION_DENIED, "ERRORS.EPERM"),
            ("EACCES", ErrorKind.PERMISSION_DENIED, "ERRORS.EPERM"),
            (530, ErrorKind.AUTH_EXPIRED, "ERRORS.530"),
            (550, ErrorKind.AUTH_REQUIRED, "ERRORS.550"),
            ("NO_FS", ErrorKind.NO_FILESYSTEM, "ERRORS.CANNOT_READ_FOLDER"),
            ("ENOTDIR", ErrorKind.CANNOT_READ_FOLDER, "ERRORS.CANNOT_READ_FOLDER"),
            ("WHATEVER", ErrorKind.UNKNOWN, "ERRORS.UNKNOWN"),
        ],
    )
    def test_code_mapping(self, code, kind, key):
        err = normalize_error(BackendError(code=code), platform="linux")
        assert err.kind is kind
        assert err.message_key == key
        assert err.code == code

    def test_no_code_is_unknown(self):
        err = normalize_error(RuntimeError("boom"), platform="linux")
        assert err.kind is ErrorKind.UNKNOWN
        assert err.code == "UNKNOWN"

    def test_bad_filename_params_unix(self):
        err = normalize_error(
            BackendError(code="BAD_FILENAME", new_name="a/b"), platform="linux"
        )
        assert err.kind is ErrorKind.INVALID_FILENAME
        assert err.params == {
            "entry": "a/b",
            "accepted_chars": "ERRORS.UNIX_VALID_FILENAME",
        }

    def test_bad_filename_params_windows(self):
        err = normalize_error(BackendError(code="BAD_FILENAME", new_name="a:b"), platform="win32")
        assert err.params["accepted_chars"] == "ERRORS.WIN_VALID_FILENAME"

    def test_folder_param(self):
        err = normalize_error(BackendError(code="NO_FS", path="zz:/x"), platform="linux")
        assert err.params == {"folder": "zz:/x"}

    def test_folder_param_from_oserror(self):
        err = normalize_error(
            NotADirectoryError(errno.ENOTDIR, "Not a directory", "/etc/passwd"),
            platform="linux",
        )
        assert err.kind is ErrorKind.CANNOT_READ_FOLDER
        assert err.params == {"folder": "/etc/passwd"}

    def test_already_normalized_passes_through(self):
        original = SessionError(ErrorKind.NOT_FOUND, "ERRORS.ENOENT", code="ENOENT")
        assert normalize_error(original) is original

    def test_filename_hint_key(self):
        assert filename_hint_key("win32") == "ERRORS.WIN_VALID_FILENAME"
        assert filename_hint_key("darwin") == "ERRORS.UNIX_VALID_FILENAME"
