# =============================================================================
# MCP-VL Image Analysis - Centralized Configuration
# =============================================================================
# Provides a single frozen Config dataclass containing all tunable parameters
# for the image pipeline, the model service client and both transports.
# Parameters are overridable via environment variables with the VL_ prefix
# (e.g., VL_MAX_IMAGE_DIMENSION=1024).  The variable names used by earlier
# deployments (ZHIPUAI_API_KEY, ZHIPUAI_BASE_URL, ...) are honoured as
# fallbacks.
# =============================================================================

import os
import tempfile
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from shared.errors import ConfigurationError

# Values shipped in example .env files that must never reach the API
_PLACEHOLDER_KEYS = {
    "your_api_key_here",
    "your-api-key",
    "your_api_key",
    "changeme",
    "xxx",
}

# Field name -> conversion applied to the raw environment string
_FIELD_TYPES = {
    "api_key": str,
    "api_base_url": str,
    "model": str,
    "temperature": float,
    "max_tokens": int,
    "model_timeout_seconds": float,
    "model_max_retries": int,
    "server_name": str,
    "server_version": str,
    "log_level": str,
    "http_host": str,
    "http_port": int,
    "temp_dir": str,
    "download_timeout_seconds": float,
    "max_download_bytes": int,
    "max_image_dimension": int,
    "jpeg_quality": int,
    "clipboard_timeout_seconds": float,
}

# Fallback variable names, consulted only when the VL_ form is unset
_LEGACY_ENV_KEYS = {
    "api_key": "ZHIPUAI_API_KEY",
    "api_base_url": "ZHIPUAI_BASE_URL",
    "model": "ZHIPUAI_MODEL",
    "server_name": "MCP_SERVER_NAME",
    "server_version": "MCP_SERVER_VERSION",
    "log_level": "LOG_LEVEL",
}


def _default_temp_dir() -> str:
    """Dedicated subdirectory of the OS temp root for pipeline artifacts."""
    return os.path.join(tempfile.gettempdir(), "mcp-vl-auto")


@dataclass(frozen=True)
class Config:
    """
    Centralized configuration for the MCP-VL image analysis server.

    Built once at process start with ``Config.from_env()`` and passed to the
    components that need it.  Instances are immutable; use ``with_overrides``
    to derive a modified copy (CLI flags, tests).
    """

    # -- Model Service (OpenAI-compatible chat completions) --
    api_key: str = ""
    api_base_url: str = "https://open.bigmodel.cn/api/paas/v4"
    model: str = "glm-4.5v"
    temperature: float = 0.7
    max_tokens: int = 1000
    model_timeout_seconds: float = 120.0
    model_max_retries: int = 2

    # -- Server identity --
    server_name: str = "mcp-vl"
    server_version: str = "1.0.0"
    log_level: str = "INFO"

    # -- HTTP mirror --
    http_host: str = "127.0.0.1"
    http_port: int = 8000

    # -- Image acquisition --
    temp_dir: str = field(default_factory=_default_temp_dir)
    download_timeout_seconds: float = 30.0
    max_download_bytes: int = 10 * 1024 * 1024
    clipboard_timeout_seconds: float = 10.0

    # -- Normalization --
    max_image_dimension: int = 2048
    jpeg_quality: int = 90

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build a Config from environment variables.

        Looks for VL_<FIELD_NAME_UPPERCASE> first, then the legacy name for
        the handful of fields that have one, and applies the field's type
        conversion.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            Config: A new immutable configuration.

        Raises:
            ConfigurationError: If a value cannot be converted to its type.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for field_name, field_type in _FIELD_TYPES.items():
            env_key = f"VL_{field_name.upper()}"
            env_value = environ.get(env_key)
            if env_value is None and field_name in _LEGACY_ENV_KEYS:
                env_key = _LEGACY_ENV_KEYS[field_name]
                env_value = environ.get(env_key)
            if env_value is None:
                continue
            try:
                overrides[field_name] = field_type(env_value.strip())
            except ValueError as exc:
                raise ConfigurationError(
                    f"Invalid value for {env_key}: {env_value!r} ({exc})"
                ) from exc
        return cls(**overrides)

    def with_overrides(self, **changes) -> "Config":
        """Return a copy with the given fields replaced; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def has_api_key(self) -> bool:
        """True when the API key is set and is not an obvious placeholder."""
        key = self.api_key.strip()
        if not key:
            return False
        lowered = key.lower()
        if lowered in _PLACEHOLDER_KEYS or lowered.startswith("your"):
            return False
        if key.startswith("<") and key.endswith(">"):
            return False
        return True

    @property
    def chat_completions_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/chat/completions"

    @property
    def user_agent(self) -> str:
        return f"{self.server_name}/{self.server_version} (+image-fetcher)"

    def require_api_key(self) -> None:
        """
        Ensure a usable API key is configured.

        Raises:
            ConfigurationError: If the key is missing or a placeholder.
        """
        if not self.has_api_key:
            raise ConfigurationError(
                "Model API key is not configured: set VL_API_KEY "
                "(or ZHIPUAI_API_KEY) to a real key"
            )
