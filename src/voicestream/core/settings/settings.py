"""
Settings management with JSON persistence.

Handles loading, saving, and validating application settings.
Uses platformdirs for cross-platform directory resolution.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

from platformdirs import user_config_path
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...utils.logger import get_logger

logger = get_logger(__name__)

APP_NAME = "voicestream"


def get_config_dir() -> Path:
    return user_config_path(APP_NAME, ensure_exists=True)


class Settings(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    model_id: str = "parakeet-tdt-0.6b-v2"
    language: str = "auto"
    input_device: Optional[str] = None

    vocabulary_terms: List[str] = Field(default_factory=list)
    api_keys: Dict[str, str] = Field(default_factory=dict)

    @field_validator("model_id")
    @classmethod
    def model_id_not_empty(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("model_id must be a non-empty string")
        return v

    @field_validator("language")
    @classmethod
    def language_not_empty(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("language must be a language code or 'auto'")
        return v.strip()

    @classmethod
    def load(cls) -> "Settings":
        config_file = get_config_dir() / "settings.json"

        if config_file.exists():
            try:
                with open(config_file, "r") as f:
                    data = json.load(f)

                if not isinstance(data, dict):
                    raise TypeError("settings.json must contain a JSON object")

                # Filter to valid keys only
                valid_keys = cls.model_fields.keys()
                filtered_data = {k: v for k, v in data.items() if k in valid_keys}

                # Validate each field individually, falling back to defaults on error
                return cls._load_with_fallbacks(filtered_data)
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning(
                    f"Could not load settings: {e}. Using defaults.", exc_info=True
                )
                return cls()

        return cls()

    @classmethod
    def _load_with_fallbacks(cls, data: dict) -> "Settings":
        """Load settings with field-level fallback to defaults on validation errors."""
        defaults = cls()
        result_data = {}

        for field_name in cls.model_fields:
            if field_name in data:
                try:
                    validated = cls.model_validate(
                        {**defaults.model_dump(), field_name: data[field_name]}
                    )
                    result_data[field_name] = getattr(validated, field_name)
                except Exception:
                    default_val = getattr(defaults, field_name)
                    logger.warning(
                        f"Invalid {field_name} {data[field_name]!r}, resetting to {default_val}"
                    )
                    result_data[field_name] = default_val
            else:
                result_data[field_name] = getattr(defaults, field_name)

        return cls.model_construct(**result_data)

    def save(self) -> None:
        config_file = get_config_dir() / "settings.json"

        data = self.model_dump()

        with open(config_file, "w") as f:
            json.dump(data, f, indent=2)


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.load()
    return _settings_instance


def get_selected_language() -> str:
    return get_settings().language or "auto"
