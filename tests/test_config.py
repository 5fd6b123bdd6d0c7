"""Tests for configuration loading."""

from ffgraph.core.config import CONFIG_ENV_VAR, StudioConfig, load_config


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self, monkeypatch):
        """Without a path or environment variable, defaults are used."""
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = load_config()
        assert config == StudioConfig()
        assert config.hash_length == 8
        assert config.undo_max_history == 10
        assert config.undo_debounce_seconds == 0.25

    def test_yaml_file(self, tmp_path):
        """Values are read from YAML."""
        path = tmp_path / "ffgraph.yaml"
        path.write_text("ffmpeg_bin: /opt/ffmpeg/bin/ffmpeg\nhash_length: 12\nmanifest_paths: [extra.yaml]\n")
        config = load_config(path)
        assert config.ffmpeg_bin == "/opt/ffmpeg/bin/ffmpeg"
        assert config.hash_length == 12
        assert config.manifest_paths == ["extra.yaml"]

    def test_environment_variable(self, tmp_path, monkeypatch):
        """FFGRAPH_CONFIG names the config file when no path is given."""
        path = tmp_path / "env.yaml"
        path.write_text("index_padding: 4\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().index_padding == 4

    def test_missing_file(self, tmp_path, caplog):
        """A missing file falls back to defaults with a warning."""
        config = load_config(tmp_path / "nope.yaml")
        assert config == StudioConfig()
        assert "Failed to read config" in caplog.text

    def test_empty_file(self, tmp_path):
        """An empty file yields defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == StudioConfig()

    def test_invalid_values(self, tmp_path, caplog):
        """Out-of-range values fall back to defaults with a warning."""
        path = tmp_path / "bad.yaml"
        path.write_text("hash_length: 0\n")
        assert load_config(path).hash_length == 8
        assert "Invalid config" in caplog.text

    def test_not_a_mapping(self, tmp_path, caplog):
        """A top-level list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        assert load_config(path) == StudioConfig()
        assert "must be a mapping" in caplog.text
