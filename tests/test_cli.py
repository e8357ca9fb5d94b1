"""Tests for the releasemirror command-line interface."""

import json
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from releasemirror import cli
from releasemirror.exceptions import (
    ConfigFileError,
    HTTPError,
    ReleaseListingError,
    StorageError,
)
from releasemirror.mirror import reconciler as reconciler_module
from releasemirror.mirror.interfaces import AssetRecord, ReleaseRecord

pytestmark = [pytest.mark.unit]


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


def test_list_releases_prints_json(mocker, capsys):
    fetch = mocker.patch.object(
        cli.GithubReleaseSource,
        "fetch_aggregated",
        return_value=[
            ReleaseRecord(
                tag_name="v1",
                published_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                assets=[AssetRecord(name="a.bin", download_url="https://example.com/a.bin")],
            )
        ],
    )

    code = _run(["list-releases", "owner/repo", "--include-tags"])

    assert code == 0
    fetch.assert_called_once_with("owner/repo", True)
    data = json.loads(capsys.readouterr().out)
    assert data[0]["tag_name"] == "v1"
    assert data[0]["assets"][0]["name"] == "a.bin"


def test_list_releases_failure_exits_non_zero(mocker, capsys):
    mocker.patch.object(
        cli.GithubReleaseSource,
        "fetch_aggregated",
        side_effect=ReleaseListingError("page 1 failed"),
    )

    assert _run(["list-releases", "owner/repo"]) == 1
    assert capsys.readouterr().out == ""


def test_mirror_success(mocker):
    run = mocker.patch.object(cli, "run_mirror", return_value=[])

    assert _run(["mirror", "/etc/releasemirror.yaml"]) == 0
    run.assert_called_once_with("/etc/releasemirror.yaml", log_level=None)


def test_mirror_uses_default_config_path(mocker):
    run = mocker.patch.object(cli, "run_mirror", return_value=[])
    mocker.patch.object(cli, "default_config_path", return_value="/home/u/.config/rm.yaml")

    assert _run(["--log-level", "DEBUG", "mirror"]) == 0
    run.assert_called_once_with("/home/u/.config/rm.yaml", log_level="DEBUG")


@pytest.mark.parametrize(
    "error",
    [
        ConfigFileError("Failed to load config file"),
        StorageError("Failed to create storage directory"),
    ],
)
def test_mirror_fatal_errors_exit_non_zero(mocker, error):
    mocker.patch.object(cli, "run_mirror", side_effect=error)

    assert _run(["mirror", "missing.yaml"]) == 1


def test_version(capsys):
    cli.main(["version"])

    assert capsys.readouterr().out.startswith("releasemirror ")


def test_no_command_prints_help(capsys):
    cli.main([])

    assert "list-releases" in capsys.readouterr().out


class TestMirrorEndToEnd:
    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "releasemirror.yaml"
        path.write_text(
            f"storage: '{tmp_path / 'mirror'}'\n"
            "repositories:\n"
            "  - path: owner/repo\n"
        )
        return path

    @pytest.fixture
    def listing(self, mocker):
        return mocker.patch.object(
            cli.GithubReleaseSource,
            "fetch_aggregated",
            return_value=[
                ReleaseRecord(
                    tag_name="v1",
                    published_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                    assets=[
                        AssetRecord(name="gone.bin", download_url="https://example.com/gone.bin"),
                        AssetRecord(name="ok.bin", download_url="https://example.com/ok.bin"),
                    ],
                )
            ],
        )

    def test_failed_asset_download_keeps_exit_code_zero(
        self, tmp_path, config_file, listing, mocker
    ):
        @contextmanager
        def serve(url, timeout=None, retries=None):
            if url.endswith("gone.bin"):
                raise HTTPError("HTTP 404 while downloading", status_code=404, url=url)
            yield iter([b"payload"])

        mocker.patch.object(reconciler_module, "open_download_stream", serve)

        assert _run(["mirror", str(config_file)]) == 0

        release_dir = tmp_path / "mirror" / "owner" / "repo" / "v1"
        assert (release_dir / "ok.bin").read_bytes() == b"payload"
        assert not (release_dir / "gone.bin").exists()

    def test_unwritable_storage_root_exits_non_zero(
        self, config_file, listing, mocker
    ):
        mocker.patch(
            "releasemirror.mirror.storage.tempfile.mkstemp",
            side_effect=PermissionError(13, "Permission denied"),
        )

        assert _run(["mirror", str(config_file)]) == 1
        listing.assert_not_called()
