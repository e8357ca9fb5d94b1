"""Tests for config loading and filter parsing."""

import os
from datetime import datetime, timedelta, timezone

import pytest

from releasemirror import config as config_module
from releasemirror.config import (
    default_config_path,
    load_config,
    parse_config,
    parse_duration,
    parse_release_filter,
)
from releasemirror.exceptions import ConfigFileError, ConfigValidationError
from releasemirror.mirror.filters import (
    AllowAll,
    DateRange,
    DateWindow,
    FileRegex,
    FixedList,
    Regex,
)

pytestmark = [pytest.mark.unit]

SAMPLE_CONFIG = """
storage: {storage}
repositories:
  - path: owner/tool
    release_filter:
      DateWindow:
        max_from_now: 7d
    asset_filter:
      FileRegex:
        pattern: '\\.deb$'
    include_tags: true
  - path: owner/lib
    release_filter: AllowAll
"""


class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        config_file = tmp_path / "mirror.yaml"
        config_file.write_text(SAMPLE_CONFIG.format(storage=tmp_path / "mirror"))

        config = load_config(str(config_file))

        assert config.storage == str(tmp_path / "mirror")
        assert [r.path for r in config.repositories] == ["owner/tool", "owner/lib"]
        tool = config.repositories[0]
        assert tool.release_filter == DateWindow(max_from_now=timedelta(days=7))
        assert isinstance(tool.asset_filter, FileRegex)
        assert tool.asset_filter.pattern.search("tool_1.0_amd64.deb")
        assert tool.include_tags is True
        lib = config.repositories[1]
        assert lib.asset_filter == AllowAll()
        assert lib.include_tags is False

    def test_load_json(self, tmp_path):
        config_file = tmp_path / "mirror.json"
        config_file.write_text(
            '{"storage": "/srv/mirror", "repositories": '
            '[{"path": "a/b", "release_filter": {"FixedList": ["v1"]}}]}'
        )

        config = load_config(str(config_file))

        assert config.repositories[0].release_filter == FixedList(
            names=frozenset({"v1"})
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_unparseable_file(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("storage: [unclosed")

        with pytest.raises(ConfigFileError):
            load_config(str(config_file))

    def test_default_config_path_uses_user_config_dir(self):
        import platformdirs

        path = default_config_path()

        assert path == os.path.join(
            platformdirs.user_config_dir("releasemirror"), "releasemirror.yaml"
        )
        assert config_module.CONFIG_FILE_NAME == "releasemirror.yaml"


class TestParseConfig:
    def test_defaults(self):
        config = parse_config({"storage": "/srv/mirror"})

        assert config.repositories == []
        assert config.github_token is None
        assert config.allow_env_token is True
        assert config.download_retries == 0
        assert config.syslog is False

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {},
            {"storage": ""},
            {"storage": "/m", "repositories": {"path": "a/b"}},
            {"storage": "/m", "repositories": [{"path": "no-slash"}]},
            {"storage": "/m", "repositories": [{"path": "a/b/c"}]},
            {"storage": "/m", "repositories": [{"path": "../b"}]},
            {"storage": "/m", "repositories": [{"path": "a/b"}, {"path": "a/b"}]},
            {"storage": "/m", "repositories": [{"path": "a/b", "include_tags": "yes"}]},
            {"storage": "/m", "download_retries": -1},
        ],
    )
    def test_invalid_documents(self, data):
        with pytest.raises(ConfigValidationError):
            parse_config(data)

    def test_create_source_uses_token_and_api_url(self):
        config = parse_config(
            {
                "storage": "/m",
                "github_token": "secret",
                "allow_env_token": False,
                "api_url": "https://ghe.example.com/api/v3/",
            }
        )

        source = config.create_source()

        assert source.github_token == "secret"
        assert source.allow_env_token is False
        assert source.api_url == "https://ghe.example.com/api/v3"


class TestReleaseFilterParsing:
    def test_allow_all_by_default(self):
        assert parse_release_filter(None) == AllowAll()
        assert parse_release_filter("AllowAll") == AllowAll()

    def test_date_range_from_strings_and_yaml_datetimes(self):
        parsed = parse_release_filter(
            {
                "DateRange": {
                    "min": "2024-01-01T00:00:00Z",
                    "max": datetime(2024, 6, 1, tzinfo=timezone.utc),
                }
            }
        )

        assert parsed == DateRange(
            min=datetime(2024, 1, 1, tzinfo=timezone.utc),
            max=datetime(2024, 6, 1, tzinfo=timezone.utc),
        )

    def test_naive_timestamps_become_aware(self):
        parsed = parse_release_filter({"DateRange": {"min": "2024-01-01T00:00:00"}})

        assert parsed.min.tzinfo is not None
        assert parsed.max is None

    def test_regex(self):
        parsed = parse_release_filter({"Regex": {"pattern": r"^v\d+"}})

        assert isinstance(parsed, Regex)
        assert parsed.pattern.search("v12")

    def test_fixed_list_with_tags_key(self):
        parsed = parse_release_filter({"FixedList": {"tags": ["v1", 2]}})

        assert parsed == FixedList(names=frozenset({"v1", "2"}))

    @pytest.mark.parametrize(
        "raw",
        [
            "Latest",
            {"Regex": {"pattern": "(unclosed"}},
            {"Regex": {}},
            {"DateRange": {"min": "soon"}},
            {"DateRange": {"earliest": "2024-01-01"}},
            {"DateWindow": {"min_from_now": "a while"}},
            {"FixedList": "v1"},
            {"AllowAll": None, "Regex": None},
            42,
        ],
    )
    def test_invalid_filters(self, raw):
        with pytest.raises(ConfigValidationError):
            parse_release_filter(raw)

    def test_asset_filter_rejects_release_variants(self):
        with pytest.raises(ConfigValidationError):
            parse_config(
                {
                    "storage": "/m",
                    "repositories": [{"path": "a/b", "asset_filter": {"Regex": {"pattern": "x"}}}],
                }
            )


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("90s", timedelta(seconds=90)),
            ("30m", timedelta(minutes=30)),
            ("24h", timedelta(hours=24)),
            ("7d", timedelta(days=7)),
            ("2w", timedelta(weeks=2)),
            ("1d12h", timedelta(days=1, hours=12)),
            (3600, timedelta(hours=1)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "h", "24hours", "-5m", True, None, -1])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)
