"""
assethealth/config/settings.py
──────────────────────────────
Engine configuration loaded from environment variables.
"""
import os
from dataclasses import dataclass


@dataclass
class Settings:
    # Database (SQLite path, ":memory:" for tests)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "asset_health.db")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Evaluation windows
    READINGS_WINDOW: int = int(os.getenv("READINGS_WINDOW", "100"))
    BASELINE_WINDOW: int = int(os.getenv("BASELINE_WINDOW", "10"))

    # Diagnostic advisor
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    ADVISOR_MODEL: str = os.getenv("ADVISOR_MODEL", "gpt-4o")
    ADVISOR_MODEL_VERSION: str = os.getenv("ADVISOR_MODEL_VERSION", "2024-05")
    ADVISOR_TIMEOUT_S: float = float(os.getenv("ADVISOR_TIMEOUT_S", "30"))
    ADVISOR_TEMPERATURE: float = float(os.getenv("ADVISOR_TEMPERATURE", "0.2"))
    ADVISOR_READINGS: int = int(os.getenv("ADVISOR_READINGS", "20"))
    ADVISOR_ALERTS: int = int(os.getenv("ADVISOR_ALERTS", "5"))

    # Demo simulation
    SIMULATION_SEED: int = int(os.getenv("SIMULATION_SEED", "42"))
    HISTORY_DAYS: int = int(os.getenv("HISTORY_DAYS", "14"))


settings = Settings()
