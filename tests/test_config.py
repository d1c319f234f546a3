import json
from pathlib import Path
from typing import Any

import pytest

from mediahub.config import ConfigError, ConfigSource, Settings, load_config, parse_config


class TestParseConfig:
    def test_sites_keep_declaration_order(self, sample_config_data: dict[str, Any]) -> None:
        config = parse_config(sample_config_data)
        assert list(config.api_sites) == ["s1", "s2"]

    def test_short_keys_mapped(self, sample_config_data: dict[str, Any]) -> None:
        site = parse_config(sample_config_data).api_sites["s1"]
        assert site.key == "s1"
        assert site.endpoint == "https://s1.example.com/api"
        assert site.display_name == "Site One"
        assert site.detail_url_template == "https://s1.example.com/detail"
        assert site.priority == 1
        assert site.status == "active"
        assert site.adapter == "generic"

    def test_filters(self, sample_config_data: dict[str, Any]) -> None:
        filters = parse_config(sample_config_data).resource_filters
        assert filters.exclude_low_quality is True
        assert "4K" in filters.accepted_qualities

    def test_filters_default_when_missing(self, sample_config_data: dict[str, Any]) -> None:
        del sample_config_data["resource_filters"]
        assert parse_config(sample_config_data).resource_filters.exclude_low_quality is False

    def test_missing_api_site(self) -> None:
        with pytest.raises(ConfigError, match="api_site"):
            parse_config({"resource_filters": {}})

    def test_empty_api_site(self) -> None:
        with pytest.raises(ConfigError):
            parse_config({"api_site": {}})

    def test_site_missing_endpoint(self) -> None:
        with pytest.raises(ConfigError, match="Invalid site configuration"):
            parse_config({"api_site": {"s1": {"name": "No API"}}})

    def test_bad_status(self, sample_config_data: dict[str, Any]) -> None:
        sample_config_data["api_site"]["s1"]["status"] = "broken"
        with pytest.raises(ConfigError):
            parse_config(sample_config_data)

    def test_site_entry_not_a_mapping(self) -> None:
        with pytest.raises(ConfigError):
            parse_config({"api_site": {"s1": "https://s1.example.com"}})

    def test_unknown_adapter(self, sample_config_data: dict[str, Any]) -> None:
        sample_config_data["api_site"]["s1"]["adapter"] = "nope"
        with pytest.raises(ConfigError, match="s1"):
            parse_config(sample_config_data)

    def test_config_error_is_value_error(self) -> None:
        assert issubclass(ConfigError, ValueError)


class TestLoadConfig:
    def test_json(self, config_file: Path) -> None:
        assert set(load_config(config_file).api_sites) == {"s1", "s2"}

    def test_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "sites.toml"
        path.write_text(
            "[api_site.alpha]\n"
            'api = "https://alpha.example.com/api"\n'
            'name = "Alpha"\n'
            "priority = 3\n"
            'adapter = "maccms"\n'
            "\n[resource_filters]\n"
            "exclude_low_quality = false\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.api_sites["alpha"].adapter == "maccms"
        assert config.api_sites["alpha"].priority == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "sites.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Could not parse"):
            load_config(path)

    @pytest.mark.parametrize("name", ["sites.json", "sites.toml"])
    def test_invalid_utf8(self, tmp_path: Path, name: str) -> None:
        path = tmp_path / name
        path.write_bytes(b"\xff\xfe{")
        with pytest.raises(ConfigError, match="Could not parse"):
            load_config(path)

    def test_root_not_object(self, tmp_path: Path) -> None:
        path = tmp_path / "sites.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(ConfigError, match="object"):
            load_config(path)


class TestConfigSource:
    def test_caches_loaded_config(self, config_file: Path) -> None:
        source = ConfigSource(config_file)
        first = source.get_config()
        config_file.write_text("{broken", encoding="utf-8")
        assert source.get_config() is first


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MEDIAHUB_PROBE_TIMEOUT", raising=False)
        settings = Settings(_env_file=None)
        assert settings.probe_timeout == 5.0
        assert settings.search_timeout == 10.0
        assert settings.check_interval == 300.0

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MEDIAHUB_SEARCH_TIMEOUT", "2.5")
        assert Settings(_env_file=None).search_timeout == 2.5

    def test_resolved_config_path(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, base_dir=tmp_path)
        assert settings.resolved_config_path == tmp_path / "sites.json"
        explicit = Settings(_env_file=None, config_path=tmp_path / "x.toml")
        assert explicit.resolved_config_path == tmp_path / "x.toml"
