"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from smarthealth.config import (
    AppConfig,
    JobConfig,
    OfferConfig,
    SessionConfig,
    TrialConfig,
    VoiceConfig,
    _safe_bool,
    _safe_float,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_defaults_match_service_rules(self):
        config = AppConfig()
        assert config.trial.free_consultations == 3
        assert config.trial.duration_days == 1
        assert config.offers.consultations_for_discount == 5
        assert config.offers.discount_percentage == 20
        assert config.offers.consultations_for_free == 10
        assert config.offers.consultations_for_priority == 3
        assert config.offers.expiry_days == 30

    def test_negative_trial_consultations(self):
        config = replace(AppConfig(), trial=replace(TrialConfig(), free_consultations=-1))
        with pytest.raises(ValueError, match="FREE_TRIAL_CONSULTATIONS"):
            _validate_config(config)

    def test_discount_above_hundred(self):
        config = replace(AppConfig(), offers=replace(OfferConfig(), discount_percentage=150))
        with pytest.raises(ValueError, match="DISCOUNT_PERCENTAGE"):
            _validate_config(config)

    def test_zero_session_timeout(self):
        config = replace(AppConfig(), session=replace(SessionConfig(), timeout_minutes=0))
        with pytest.raises(ValueError, match="SESSION_TIMEOUT_MINUTES"):
            _validate_config(config)

    def test_non_positive_lock_timeout(self):
        config = replace(AppConfig(), session=replace(SessionConfig(), lock_timeout_sec=0))
        with pytest.raises(ValueError, match="SESSION_LOCK_TIMEOUT"):
            _validate_config(config)

    def test_unknown_voice_provider(self):
        config = replace(AppConfig(), voice=replace(VoiceConfig(), provider="skype"))
        with pytest.raises(ValueError, match="VOICE_PROVIDER"):
            _validate_config(config)

    def test_zero_sweep_interval(self):
        config = replace(AppConfig(), jobs=replace(JobConfig(), sweep_interval_sec=0))
        with pytest.raises(ValueError, match="SWEEP_INTERVAL_SECONDS"):
            _validate_config(config)


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_bad_value(self, monkeypatch):
        monkeypatch.setenv("SMARTHEALTH_TEST_INT", "not-a-number")
        with pytest.raises(ValueError, match="SMARTHEALTH_TEST_INT"):
            _safe_int("SMARTHEALTH_TEST_INT", "7")

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("yes", True), ("false", False), ("0", False),
    ])
    def test_safe_bool_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("SMARTHEALTH_TEST_BOOL", raw)
        assert _safe_bool("SMARTHEALTH_TEST_BOOL", "false") is expected
