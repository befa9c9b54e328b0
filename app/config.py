# app/config.py
"""
Centralized configuration management with startup validation.

Defines REQUIRED vs OPTIONAL environment variables and provides
safe configuration loading with validation and logging.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from app.classifier.config import (
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_UPLOAD_ENDPOINT,
    DEFAULT_URL_ENDPOINT,
    MAX_IMAGE_SIZE,
    get_upload_endpoint,
    get_url_endpoint,
    is_classifier_configured,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

SERVICE_NAME = "imagecheck"
SERVICE_VERSION = "0.1.0"

# Default values
DEFAULT_MAX_UPLOAD_SIZE_BYTES = MAX_IMAGE_SIZE
MIN_UPLOAD_SIZE_BYTES = 1024  # 1KB minimum
DEFAULT_HISTORY_MAX_LIMIT = 100
DEFAULT_SESSION_DURATION_DAYS = 30

# Room for multipart boundaries and form fields on top of the image itself
REQUEST_OVERHEAD_BYTES = 64 * 1024

# Sensitive substrings that should never appear in logs
SENSITIVE_SUBSTRINGS = ("key", "token", "secret", "password", "credential", "auth")


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class AppConfig:
    """Application configuration loaded from environment."""

    # Service info
    service_name: str = SERVICE_NAME
    service_version: str = SERVICE_VERSION
    environment: str = "development"

    # Classifier
    classifier_upload_endpoint: str = DEFAULT_UPLOAD_ENDPOINT
    classifier_url_endpoint: str = DEFAULT_URL_ENDPOINT
    classifier_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    classifier_api_key_present: bool = False

    # Limits
    max_upload_size_bytes: int = DEFAULT_MAX_UPLOAD_SIZE_BYTES
    history_max_limit: int = DEFAULT_HISTORY_MAX_LIMIT

    # Sessions
    session_duration_days: int = DEFAULT_SESSION_DURATION_DAYS

    # Warnings collected during config load
    warnings: list = field(default_factory=list)

    @property
    def max_request_size_bytes(self) -> int:
        """Largest request body accepted by the size-limit middleware."""
        # A retained upload is saved to history as base64 (4/3 larger)
        return (self.max_upload_size_bytes * 4) // 3 + REQUEST_OVERHEAD_BYTES

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# =============================================================================
# Configuration Loading
# =============================================================================


def _parse_int_env(
    name: str, default: int, min_value: Optional[int] = None
) -> tuple[int, Optional[str]]:
    """
    Parse an integer environment variable with validation.

    Returns (value, warning_message).
    On invalid input, returns default with a warning.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default, None

    try:
        value = int(raw)
    except ValueError:
        warning = f"{name}='{raw}' is not a valid integer; using default {default}"
        return default, warning

    if min_value is not None and value < min_value:
        warning = f"{name}={value} is below minimum {min_value}; using default {default}"
        return default, warning

    return value, None


def _parse_float_env(
    name: str, default: float, min_value: Optional[float] = None
) -> tuple[float, Optional[str]]:
    """Float counterpart of _parse_int_env."""
    raw = os.environ.get(name)
    if raw is None:
        return default, None

    try:
        value = float(raw)
    except ValueError:
        return default, f"{name}='{raw}' is not a valid number; using default {default}"

    if min_value is not None and value < min_value:
        return default, f"{name}={value} is below minimum {min_value}; using default {default}"

    return value, None


def load_config(fail_fast: bool = True) -> AppConfig:
    """
    Load and validate application configuration from environment.

    Args:
        fail_fast: If True, raise ConfigurationError on critical issues.
                   If False, collect warnings and continue.

    Returns:
        AppConfig instance with validated configuration.

    Raises:
        ConfigurationError: If the classifier key is missing in production
                           and fail_fast is True.
    """
    warnings = []

    environment = os.environ.get("ENVIRONMENT", "development")

    upload_endpoint = get_upload_endpoint()
    url_endpoint = get_url_endpoint()

    timeout, timeout_warning = _parse_float_env(
        "CLASSIFIER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, min_value=1.0
    )
    if timeout_warning:
        warnings.append(timeout_warning)

    max_upload, upload_warning = _parse_int_env(
        "MAX_UPLOAD_SIZE_BYTES",
        DEFAULT_MAX_UPLOAD_SIZE_BYTES,
        min_value=MIN_UPLOAD_SIZE_BYTES,
    )
    if upload_warning:
        warnings.append(upload_warning)

    history_max_limit, limit_warning = _parse_int_env(
        "HISTORY_MAX_LIMIT", DEFAULT_HISTORY_MAX_LIMIT, min_value=1
    )
    if limit_warning:
        warnings.append(limit_warning)

    session_days, session_warning = _parse_int_env(
        "SESSION_DURATION_DAYS", DEFAULT_SESSION_DURATION_DAYS, min_value=1
    )
    if session_warning:
        warnings.append(session_warning)

    # API key presence (check presence, don't store value)
    api_key_present = is_classifier_configured()

    if not api_key_present:
        if fail_fast and environment.lower() == "production":
            raise ConfigurationError("CLASSIFIER_API_KEY is required in production")
        warnings.append(
            "CLASSIFIER_API_KEY is not set; detection requests will fail with 503"
        )

    for warning in warnings:
        logger.warning(f"[CONFIG] {warning}")

    return AppConfig(
        environment=environment,
        classifier_upload_endpoint=upload_endpoint,
        classifier_url_endpoint=url_endpoint,
        classifier_timeout_seconds=timeout,
        classifier_api_key_present=api_key_present,
        max_upload_size_bytes=max_upload,
        history_max_limit=history_max_limit,
        session_duration_days=session_days,
        warnings=warnings,
    )


def log_config_snapshot(config: AppConfig) -> str:
    """
    Generate and log a safe configuration snapshot.

    Returns the snapshot string for testing purposes.
    Never logs actual secret values - only boolean presence flags.
    """
    snapshot = (
        f"[STARTUP] service={config.service_name} "
        f"version={config.service_version} "
        f"environment={config.environment} "
        f"classifier_upload_endpoint={config.classifier_upload_endpoint} "
        f"classifier_url_endpoint={config.classifier_url_endpoint} "
        f"classifier_timeout_seconds={config.classifier_timeout_seconds} "
        f"max_upload_size_bytes={config.max_upload_size_bytes} "
        f"history_max_limit={config.history_max_limit} "
        f"classifier_api_key_present={config.classifier_api_key_present}"
    )
    logger.info(snapshot)
    return snapshot


def validate_config_snapshot_safety(snapshot: str) -> bool:
    """
    Validate that a config snapshot doesn't contain sensitive values.

    Returns True if safe, False if potentially unsafe.
    """
    snapshot_lower = snapshot.lower()

    # Allow "key_present=" but not "key=" followed by a non-boolean value
    for sensitive in SENSITIVE_SUBSTRINGS:
        pattern = rf"{sensitive}=(?!true|false)"
        if re.search(pattern, snapshot_lower):
            return False

    return True


# Process-wide configuration, loaded on first use
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the loaded configuration, loading it on first call."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (for testing)."""
    global _config
    _config = None
