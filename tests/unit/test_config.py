"""Tests for chibiforge.core.config: configuration management.

Tests cover:
- Default values for model tiers, thresholds and pacing.
- Environment variable overrides via the CHIBIFORGE_ prefix.
- Automatic creation of the uploads directory.
- Pydantic validation constraints.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from chibiforge.core.config import DEFAULT_TEXT_MODELS, ChibiforgeConfig
from chibiforge.core.policy import PacingPolicy


def make_config(temp_dir: Path, **overrides) -> ChibiforgeConfig:
    return ChibiforgeConfig(
        _env_file=None,
        uploads_dir=str(temp_dir / "uploads"),
        **overrides,
    )


class TestConfigDefaults:
    """Verify that ChibiforgeConfig provides the documented defaults."""

    def test_default_model_tiers(self, temp_dir, monkeypatch):
        monkeypatch.delenv("CHIBIFORGE_TEXT_MODELS", raising=False)
        cfg = make_config(temp_dir)
        assert cfg.text_models == DEFAULT_TEXT_MODELS
        assert cfg.image_model == "gemini-2.5-flash-image"

    def test_default_segmentation_settings(self, test_config):
        assert test_config.white_threshold == 42.0
        assert test_config.edge_alpha == 60
        assert test_config.trim_threshold == 5
        assert test_config.output_height == 800

    def test_default_detection_settings(self, test_config):
        assert test_config.max_persons == 3
        assert test_config.min_image_bytes == 5000
        assert test_config.synthesis_retries == 2

    def test_default_pacing(self, test_config):
        policy = PacingPolicy.from_config(test_config)
        assert policy.rate_limit_backoff == 2.0
        assert policy.photo_pacing == 1.5
        assert policy.synthesis_retry_delay == 3.0
        assert policy.synthesis_rate_limit_delay == 4.0
        assert policy.person_pacing == 3.0
        assert policy.record_pacing == 5.0
        assert policy.synthesis_attempts == 3


class TestConfigEnvironment:
    """CHIBIFORGE_* environment variables override defaults."""

    def test_env_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CHIBIFORGE_GEMINI_API_KEY", "from-env")
        monkeypatch.setenv("CHIBIFORGE_TEXT_MODELS", '["gemma-3-27b-it"]')
        monkeypatch.setenv("CHIBIFORGE_PERSON_PACING", "0")

        cfg = make_config(temp_dir)

        assert cfg.gemini_api_key == "from-env"
        assert cfg.text_models == ["gemma-3-27b-it"]
        assert cfg.person_pacing == 0


class TestConfigDirectoryCreation:
    def test_uploads_dir_created(self, temp_dir):
        cfg = make_config(temp_dir)
        assert cfg.uploads_dir.is_dir()

    def test_nested_uploads_dir_created(self, temp_dir):
        cfg = ChibiforgeConfig(_env_file=None, uploads_dir=str(temp_dir / "a" / "b" / "uploads"))
        assert cfg.uploads_dir.is_dir()


class TestConfigValidation:
    def test_empty_model_tiers_rejected(self, temp_dir):
        with pytest.raises(Exception):
            make_config(temp_dir, text_models=[])

    def test_blank_model_names_stripped(self, temp_dir):
        cfg = make_config(temp_dir, text_models=[" a ", "", "b"])
        assert cfg.text_models == ["a", "b"]

    def test_edge_alpha_range(self, temp_dir):
        with pytest.raises(Exception):
            make_config(temp_dir, edge_alpha=300)

    def test_negative_pacing_rejected(self, temp_dir):
        with pytest.raises(Exception):
            make_config(temp_dir, photo_pacing=-1)

    def test_public_prefix_trailing_slash(self, temp_dir):
        assert make_config(temp_dir, public_prefix="/media/").public_prefix == "/media"

    def test_invalid_log_level(self, temp_dir):
        with pytest.raises(Exception):
            make_config(temp_dir, log_level="LOUD")
