"""Tests for Settings persistence."""

import json
from pathlib import Path
from unittest.mock import patch

from voicestream.core.settings import Settings, get_config_dir

CONFIG_DIR = "voicestream.core.settings.settings.get_config_dir"


class TestSettings:
    def test_default_values(self):
        settings = Settings()
        assert settings.model_id == "parakeet-tdt-0.6b-v2"
        assert settings.language == "auto"
        assert settings.input_device is None
        assert settings.vocabulary_terms == []
        assert settings.api_keys == {}

    def test_save_load_cycle(self, tmp_path):
        with patch(CONFIG_DIR, return_value=tmp_path):
            original = Settings(
                model_id="nova-3",
                language="de",
                input_device="Test Mic",
                vocabulary_terms=["Kubernetes"],
                api_keys={"Deepgram": "key"},
            )
            original.save()

            assert (tmp_path / "settings.json").exists()

            loaded = Settings.load()
            assert loaded.model_id == "nova-3"
            assert loaded.language == "de"
            assert loaded.input_device == "Test Mic"
            assert loaded.vocabulary_terms == ["Kubernetes"]
            assert loaded.api_keys == {"Deepgram": "key"}

    def test_load_nonexistent_returns_defaults(self, tmp_path):
        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.model_id == Settings().model_id

    def test_load_corrupted_json_returns_defaults(self, tmp_path):
        (tmp_path / "settings.json").write_text("{ this is not valid json }")

        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.model_id == Settings().model_id

    def test_load_non_object_returns_defaults(self, tmp_path):
        (tmp_path / "settings.json").write_text("[1, 2, 3]")

        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.language == "auto"

    def test_unknown_keys_are_ignored(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"hotkey": "ctrl+space", "language": "fr"}))

        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.language == "fr"


class TestSettingsValidation:
    def test_empty_model_id_resets_to_default(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"model_id": "", "language": "it"}))

        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.model_id == "parakeet-tdt-0.6b-v2"
        assert settings.language == "it"

    def test_blank_language_resets_to_auto(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"language": "  "}))

        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.language == "auto"

    def test_invalid_api_keys_reset(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"api_keys": ["not", "a", "map"]}))

        with patch(CONFIG_DIR, return_value=tmp_path):
            settings = Settings.load()

        assert settings.api_keys == {}


class TestConfigPaths:
    def test_get_config_dir_returns_path(self):
        result = get_config_dir()
        assert isinstance(result, Path)
        assert "voicestream" in str(result)
        assert result.exists()
