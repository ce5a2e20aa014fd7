"""
Central configuration for the till.

Store API location, operator identity headers, and the store settings the
cash session gate consumes (automatic close at closing time) are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. config/store_settings.json  (admin-editable, persisted)
  2. Environment variables
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from typing import Optional

from models.cash_session import StoreSettings

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_FILENAME  = "store_settings.json"

# The gate must look at the clock at least once per minute
MAX_AUTO_CLOSE_CHECK_SECONDS = 60


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in ("false", "0", "no", "off")


def parse_clock(value: Optional[str]) -> Optional[time]:
    """Parse "HH:MM" into a time; None if missing or malformed."""
    if not value:
        return None
    try:
        hours, minutes = str(value).strip().split(":")
        return time(int(hours), int(minutes))
    except ValueError:
        return None


@dataclass
class Config:
    # --- Store API ---
    api_base_url: str = field(
        default_factory=lambda: os.getenv("POS_API_URL", "http://localhost:3001")
    )
    api_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("POS_API_TIMEOUT", "15"))
    )

    # --- Operator identity (sent as x-auth-* headers) ---
    auth_user_id: Optional[str] = field(default_factory=lambda: os.getenv("POS_AUTH_USER_ID"))
    auth_email:   Optional[str] = field(default_factory=lambda: os.getenv("POS_AUTH_EMAIL"))
    auth_name:    Optional[str] = field(default_factory=lambda: os.getenv("POS_AUTH_NAME"))

    # --- Store hours / automatic cash close ---
    auto_cash_close: bool = field(
        default_factory=lambda: _env_bool("AUTO_CASH_CLOSE", "true")
    )
    opening_time: str = field(default_factory=lambda: os.getenv("OPENING_TIME", "09:00"))
    closing_time: str = field(default_factory=lambda: os.getenv("CLOSING_TIME", "18:00"))
    auto_close_check_seconds: int = field(
        default_factory=lambda: int(os.getenv("AUTO_CLOSE_CHECK_INTERVAL", "30"))
    )

    # --- Point of sale ---
    product_search_threshold: int = 70    # Minimum rapidfuzz score (0-100)
    recent_sales_limit:       int = 10    # Sales re-fetched after a checkout

    config_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
    )

    def __post_init__(self) -> None:
        """Overlay admin-editable settings from store_settings.json if present."""
        settings_file = self.config_dir / SETTINGS_FILENAME
        if settings_file.exists():
            _type_map: dict[str, type] = {
                "api_base_url":             str,
                "api_timeout_seconds":      float,
                "auto_cash_close":          bool,
                "opening_time":             str,
                "closing_time":             str,
                "auto_close_check_seconds": int,
                "product_search_threshold": int,
                "recent_sales_limit":       int,
            }
            try:
                with open(settings_file, encoding="utf-8") as f:
                    overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
                for key, val in overrides.items():
                    if key in _type_map and hasattr(self, key):
                        setattr(self, key, _type_map[key](val))
            except Exception as exc:
                logger.warning("Failed to load %s: %s", SETTINGS_FILENAME, exc)

        self.auto_close_check_seconds = max(
            1, min(self.auto_close_check_seconds, MAX_AUTO_CLOSE_CHECK_SECONDS)
        )

    def auth_headers(self) -> dict[str, str]:
        headers = {
            "x-auth-user-id": self.auth_user_id,
            "x-auth-email":   self.auth_email,
            "x-auth-name":    self.auth_name,
        }
        return {k: v for k, v in headers.items() if v}

    def store_settings(self) -> StoreSettings:
        """
        The settings the cash session gate consumes. An unparseable
        closing time disables the automatic close.
        """
        closing = parse_clock(self.closing_time)
        if self.auto_cash_close and closing is None:
            logger.warning(
                "Invalid closing_time %r (expected HH:MM) — automatic cash close disabled",
                self.closing_time,
            )
        return StoreSettings(
            auto_cash_close=self.auto_cash_close and closing is not None,
            closing_time=closing.strftime("%H:%M") if closing else None,
        )

    def save_store_settings(self, **updates) -> Path:
        """Persist settings to store_settings.json, merged with what is there."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        settings_file = self.config_dir / SETTINGS_FILENAME
        current: dict = {}
        if settings_file.exists():
            try:
                with open(settings_file, encoding="utf-8") as f:
                    current = json.load(f)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Overwriting unreadable %s: %s", SETTINGS_FILENAME, exc)
        for key, val in updates.items():
            if not hasattr(self, key):
                raise KeyError(f"Unknown setting: {key}")
            setattr(self, key, val)
            current[key] = val
        with open(settings_file, "w", encoding="utf-8") as f:
            json.dump(current, f, indent=2)
        return settings_file
