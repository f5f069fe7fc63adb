"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


@dataclass(frozen=True)
class Config:
    db_path: str = "grooming_desk.db"
    secret_key: str = "grooming-desk-secret"
    log_level: str = "INFO"
    log_buffer_size: int = 200
    slot_step_minutes: int = 30
    max_slots: int = 10


def load_config() -> Config:
    return Config(
        db_path=os.getenv("GROOMINGDESK_DB_PATH", Config.db_path),
        secret_key=os.getenv("GROOMINGDESK_SECRET_KEY", Config.secret_key),
        log_level=os.getenv("GROOMINGDESK_LOG_LEVEL", Config.log_level).upper(),
        log_buffer_size=int(os.getenv("GROOMINGDESK_LOG_BUFFER", Config.log_buffer_size)),
        slot_step_minutes=int(
            os.getenv("GROOMINGDESK_SLOT_STEP_MINUTES", Config.slot_step_minutes)
        ),
        max_slots=int(os.getenv("GROOMINGDESK_MAX_SLOTS", Config.max_slots)),
    )
