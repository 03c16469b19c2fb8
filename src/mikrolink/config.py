from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    timeout_ms: int
    max_pending: int
    log_level: str
    user: Optional[str]
    password: Optional[str]
    sim_host: str
    sim_port: int


def load_settings() -> Settings:
    load_dotenv(override=False)

    host = os.getenv("MIKROLINK_HOST", "192.168.88.1")
    port = int(os.getenv("MIKROLINK_PORT", "8728"))
    timeout_ms = int(os.getenv("MIKROLINK_TIMEOUT_MS", "10000"))
    max_pending = int(os.getenv("MIKROLINK_MAX_PENDING", "0"))
    log_level = os.getenv("MIKROLINK_LOG_LEVEL", "INFO")
    user = os.getenv("MIKROLINK_USER") or None
    password = os.getenv("MIKROLINK_PASSWORD")
    sim_host = os.getenv("MIKROLINK_SIM_HOST", "127.0.0.1")
    sim_port = int(os.getenv("MIKROLINK_SIM_PORT", "8728"))

    return Settings(
        host=host,
        port=port,
        timeout_ms=timeout_ms,
        max_pending=max_pending,
        log_level=log_level,
        user=user,
        password=password,
        sim_host=sim_host,
        sim_port=sim_port,
    )
