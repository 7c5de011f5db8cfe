"""
Centralized configuration with environment variable overrides.

Gateway credentials, shortcodes, trial length, offer thresholds and
session timeouts are all configurable here. Flows read these values and
never hardcode them.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

VOICE_PROVIDERS = ("africastalking", "twilio")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag such as ``true``/``false``/``1``/``0``."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BrandConfig:
    """Service identity shown to subscribers."""

    service_name: str = os.getenv("SERVICE_NAME", "SmartHealth")
    ussd_code: str = os.getenv("USSD_CODE", "*384*34153#")
    currency: str = os.getenv("CURRENCY", "KES")
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "en")


@dataclass(frozen=True)
class TrialConfig:
    """Free trial window granted to every new subscriber."""

    duration_days: int = _safe_int("TRIAL_DURATION_DAYS", "1")
    free_consultations: int = _safe_int("FREE_TRIAL_CONSULTATIONS", "3")


@dataclass(frozen=True)
class OfferConfig:
    """Consultation-count thresholds for reward offers."""

    consultations_for_discount: int = _safe_int("CONSULTATIONS_FOR_DISCOUNT", "5")
    discount_percentage: int = _safe_int("DISCOUNT_PERCENTAGE", "20")
    consultations_for_free: int = _safe_int("CONSULTATIONS_FOR_FREE", "10")
    consultations_for_priority: int = _safe_int("CONSULTATIONS_FOR_PRIORITY", "3")
    expiry_days: int = _safe_int("OFFER_EXPIRY_DAYS", "30")


@dataclass(frozen=True)
class SessionConfig:
    """Session lifetime, locking and input validation limits."""

    timeout_minutes: int = _safe_int("SESSION_TIMEOUT_MINUTES", "10")
    lock_timeout_sec: float = _safe_float("SESSION_LOCK_TIMEOUT", "5.0")
    replay_cache_seconds: int = _safe_int("REPLAY_CACHE_SECONDS", "120")
    min_name_length: int = _safe_int("MIN_NAME_LENGTH", "3")
    min_symptom_length: int = _safe_int("MIN_SYMPTOM_LENGTH", "20")
    history_limit: int = _safe_int("HISTORY_LIMIT", "5")
    max_pin_attempts: int = _safe_int("MAX_PIN_ATTEMPTS", "5")
    pin_lockout_minutes: int = _safe_int("PIN_LOCKOUT_MINUTES", "30")
    provisional_case_ttl_hours: int = _safe_int("PROVISIONAL_CASE_TTL_HOURS", "24")


@dataclass(frozen=True)
class VoiceConfig:
    """IVR provider selection and call-control settings."""

    provider: str = os.getenv("VOICE_PROVIDER", "africastalking").lower()
    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:8000").rstrip("/")
    caller_id: str = os.getenv("VOICE_CALLER_ID", "")
    hold_music_url: str = os.getenv(
        "HOLD_MUSIC_URL",
        "http://com.twilio.sounds.music.s3.amazonaws.com/MARKOVICHAMP-Borghestral.mp3",
    )
    recording_max_length: int = _safe_int("RECORDING_MAX_LENGTH", "60")
    digit_timeout: int = _safe_int("DIGIT_TIMEOUT", "10")
    call_queue_timeout_minutes: int = _safe_int("CALL_QUEUE_TIMEOUT_MINUTES", "5")
    twilio_account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    twilio_auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")


@dataclass(frozen=True)
class MessagingConfig:
    """Africa's Talking SMS credentials and retry policy."""

    username: str = os.getenv("AT_USERNAME", "sandbox")
    api_key: str = os.getenv("AT_API_KEY", "")
    shortcode: str = os.getenv("AT_SMS_SHORTCODE", "")
    max_attempts: int = _safe_int("SMS_MAX_ATTEMPTS", "3")
    timeout_sec: float = _safe_float("SMS_TIMEOUT", "10.0")


@dataclass(frozen=True)
class PaymentConfig:
    """Mobile payment gateway settings."""

    api_url: str = os.getenv("PAYMENT_API_URL", "https://api.zenopay.com/v1/payments")
    api_key: str = os.getenv("PAYMENT_API_KEY", "")
    merchant_id: str = os.getenv("PAYMENT_MERCHANT_ID", "")
    secret: str = os.getenv("PAYMENT_SECRET", "change-me")
    callback_url: str = os.getenv("PAYMENT_CALLBACK_URL", "")
    test_mode: bool = _safe_bool("PAYMENT_TEST_MODE", "true")
    timeout_sec: float = _safe_float("PAYMENT_TIMEOUT", "10.0")


@dataclass(frozen=True)
class JobConfig:
    """Background sweep scheduling."""

    enabled: bool = _safe_bool("JOBS_ENABLED", "true")
    sweep_interval_sec: int = _safe_int("SWEEP_INTERVAL_SECONDS", "60")
    sms_queue_interval_sec: int = _safe_int("SMS_QUEUE_INTERVAL_SECONDS", "120")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    brand: BrandConfig = field(default_factory=BrandConfig)
    trial: TrialConfig = field(default_factory=TrialConfig)
    offers: OfferConfig = field(default_factory=OfferConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    jobs: JobConfig = field(default_factory=JobConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "smarthealth-sessions")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.brand.default_language not in ("en", "sw"):
        raise ValueError(
            f"DEFAULT_LANGUAGE must be 'en' or 'sw', got {config.brand.default_language!r}"
        )
    if config.trial.duration_days < 0:
        raise ValueError(
            f"TRIAL_DURATION_DAYS must be >= 0, got {config.trial.duration_days}"
        )
    if config.trial.free_consultations < 0:
        raise ValueError(
            f"FREE_TRIAL_CONSULTATIONS must be >= 0, got {config.trial.free_consultations}"
        )
    if not 1 <= config.offers.discount_percentage <= 100:
        raise ValueError(
            f"DISCOUNT_PERCENTAGE must be between 1 and 100, got {config.offers.discount_percentage}"
        )

    for name, value in [
        ("CONSULTATIONS_FOR_DISCOUNT", config.offers.consultations_for_discount),
        ("CONSULTATIONS_FOR_FREE", config.offers.consultations_for_free),
        ("CONSULTATIONS_FOR_PRIORITY", config.offers.consultations_for_priority),
        ("OFFER_EXPIRY_DAYS", config.offers.expiry_days),
        ("SESSION_TIMEOUT_MINUTES", config.session.timeout_minutes),
        ("MIN_NAME_LENGTH", config.session.min_name_length),
        ("MIN_SYMPTOM_LENGTH", config.session.min_symptom_length),
        ("HISTORY_LIMIT", config.session.history_limit),
        ("MAX_PIN_ATTEMPTS", config.session.max_pin_attempts),
        ("PIN_LOCKOUT_MINUTES", config.session.pin_lockout_minutes),
        ("PROVISIONAL_CASE_TTL_HOURS", config.session.provisional_case_ttl_hours),
        ("CALL_QUEUE_TIMEOUT_MINUTES", config.voice.call_queue_timeout_minutes),
        ("RECORDING_MAX_LENGTH", config.voice.recording_max_length),
        ("SMS_MAX_ATTEMPTS", config.messaging.max_attempts),
        ("SWEEP_INTERVAL_SECONDS", config.jobs.sweep_interval_sec),
        ("SMS_QUEUE_INTERVAL_SECONDS", config.jobs.sms_queue_interval_sec),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    if config.session.lock_timeout_sec <= 0:
        raise ValueError(
            f"SESSION_LOCK_TIMEOUT must be > 0, got {config.session.lock_timeout_sec}"
        )
    if config.voice.provider not in VOICE_PROVIDERS:
        raise ValueError(
            f"VOICE_PROVIDER must be one of {VOICE_PROVIDERS}, got {config.voice.provider!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded for '%s' (voice provider: %s)",
        config.brand.service_name, config.voice.provider,
    )
    return config


# Singleton instance
settings = load_config()
