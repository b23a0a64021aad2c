"""
Configuration for Endercom agent functions and polling agents.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_PLATFORM_URL = "http://localhost:3000"
DEFAULT_BASE_URL = "https://endercom.io"
DEFAULT_TIMEOUT = 10.0


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class FunctionConfig:
    """Configuration for an agent function runtime."""

    platform_url: str = DEFAULT_PLATFORM_URL

    auto_register: bool = True

    debug: bool = False

    timeout: float = DEFAULT_TIMEOUT

    log_level: str = "info"

    def __post_init__(self):
        self.platform_url = self.platform_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "FunctionConfig":
        """Create configuration from environment variables."""
        return cls(
            platform_url=os.environ.get("ENDERCOM_PLATFORM_URL", DEFAULT_PLATFORM_URL),
            auto_register=_env_flag("ENDERCOM_AUTO_REGISTER", True),
            debug=_env_flag("ENDERCOM_DEBUG", False),
            timeout=float(os.environ.get("ENDERCOM_TIMEOUT", str(DEFAULT_TIMEOUT))),
            log_level=os.environ.get("ENDERCOM_LOG_LEVEL", "info"),
        )


@dataclass
class AgentConfig:
    """Configuration for a legacy polling agent."""

    api_key: Optional[str] = None
    frequency_id: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = 2.0
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Create configuration from environment variables."""
        return cls(
            api_key=os.environ.get("ENDERCOM_API_KEY"),
            frequency_id=os.environ.get("ENDERCOM_FREQUENCY_ID"),
            base_url=os.environ.get("ENDERCOM_BASE_URL", DEFAULT_BASE_URL),
            poll_interval=float(os.environ.get("ENDERCOM_POLL_INTERVAL", "2.0")),
            timeout=float(os.environ.get("ENDERCOM_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )
