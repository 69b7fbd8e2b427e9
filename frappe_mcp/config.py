# config.py - connection settings for the Frappe site
import os
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger("frappe_mcp.config")

DEFAULT_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class FrappeConfig:
    url: str = DEFAULT_URL
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    team_name: str = ""
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        object.__setattr__(self, "url", (self.url or DEFAULT_URL).rstrip("/"))

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "FrappeConfig":
        """Build a config from FRAPPE_* environment variables (and .env)."""
        if dotenv:
            load_dotenv()
        timeout = os.environ.get("FRAPPE_TIMEOUT", "")
        return cls(
            url=os.environ.get("FRAPPE_URL", DEFAULT_URL),
            api_key=os.environ.get("FRAPPE_API_KEY") or None,
            api_secret=os.environ.get("FRAPPE_API_SECRET") or None,
            team_name=os.environ.get("FRAPPE_TEAM_NAME", ""),
            timeout=float(timeout) if timeout.strip() else DEFAULT_TIMEOUT,
        )

    def validate_credentials(self) -> Tuple[bool, str]:
        if not self.api_key and not self.api_secret:
            return False, ("Authentication failed: Both API key and API secret are missing. "
                           "API key/secret is the only supported authentication method.")
        if not self.api_key:
            return False, ("Authentication failed: API key is missing. "
                           "API key/secret is the only supported authentication method.")
        if not self.api_secret:
            return False, ("Authentication failed: API secret is missing. "
                           "API key/secret is the only supported authentication method.")
        return True, "API credentials validation successful."

    def log_summary(self):
        logger.info("Frappe URL: %s", self.url)
        logger.info("API key available: %s", bool(self.api_key))
        logger.info("API secret available: %s", bool(self.api_secret))
        if self.api_key:
            logger.info("API key prefix: %s...", self.api_key[:4])
