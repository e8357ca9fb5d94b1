"""
Tests for the releasemirror exception hierarchy.

The hierarchy encodes how far a failure propagates: configuration and storage
errors are fatal, listing errors are repository-fatal, and download and path
validation errors are item-recoverable.
"""

import pytest

from releasemirror.exceptions import (
    APIError,
    ConfigFileError,
    ConfigurationError,
    ConfigValidationError,
    DownloadError,
    FileSystemError,
    HTTPError,
    NetworkError,
    PathValidationError,
    ReleaseListingError,
    ReleaseMirrorError,
    StorageError,
)


class TestReleaseMirrorError:
    def test_basic_message(self):
        error = ReleaseMirrorError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.details is None

    def test_message_with_details(self):
        error = ReleaseMirrorError("Operation failed", details="Connection timeout")
        assert str(error) == "Operation failed - Connection timeout"
        assert error.message == "Operation failed"


@pytest.mark.parametrize(
    "subclass,parent",
    [
        (ConfigFileError, ConfigurationError),
        (ConfigValidationError, ConfigurationError),
        (ReleaseListingError, APIError),
        (NetworkError, DownloadError),
        (HTTPError, DownloadError),
        (StorageError, FileSystemError),
        (PathValidationError, FileSystemError),
        (ConfigurationError, ReleaseMirrorError),
        (APIError, ReleaseMirrorError),
        (DownloadError, ReleaseMirrorError),
        (FileSystemError, ReleaseMirrorError),
    ],
)
def test_hierarchy(subclass, parent):
    assert issubclass(subclass, parent)


def test_attributes():
    listing = ReleaseListingError("failed", endpoint="/repos/o/r/releases", status_code=502)
    http = HTTPError("HTTP 404 while downloading", status_code=404, url="https://x/y")
    storage = StorageError("cannot create", path="/srv/mirror", details="EACCES")

    assert listing.endpoint == "/repos/o/r/releases"
    assert listing.status_code == 502
    assert http.status_code == 404
    assert http.url == "https://x/y"
    assert storage.path == "/srv/mirror"
    assert str(storage) == "cannot create - EACCES"
