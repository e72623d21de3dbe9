from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pool_watcher.decoders.constants import (
    ORCA_WHIRLPOOL_PROGRAM_ID,
    RAYDIUM_CLMM_PROGRAM_ID,
    RAYDIUM_CPMM_PROGRAM_ID,
)
from pool_watcher.models.pool import ProgramKind, WatchedProgram
from pool_watcher.watcher.resync import MIN_RESYNC_INTERVAL_SEC

DEFAULT_PROGRAMS = [
    WatchedProgram(kind=ProgramKind.ORCA_WHIRLPOOL, program_id=ORCA_WHIRLPOOL_PROGRAM_ID),
    WatchedProgram(kind=ProgramKind.RAYDIUM_CLMM, program_id=RAYDIUM_CLMM_PROGRAM_ID),
    WatchedProgram(kind=ProgramKind.RAYDIUM_CPMM, program_id=RAYDIUM_CPMM_PROGRAM_ID),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="POOL_WATCHER_", extra="ignore"
    )

    # Solana endpoints (ws_url derived from rpc_url when empty)
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    ws_url: str = ""
    commitment: str = "confirmed"

    # JSON list in env: [{"kind": "orca_whirlpool", "program_id": "whir..."}]
    programs: list[WatchedProgram] = DEFAULT_PROGRAMS

    # Resync (floored at MIN_RESYNC_INTERVAL_SEC, pull scans are heavy)
    resync_interval_sec: int = 1800

    # Event bus per-subscriber queue size
    bus_capacity: int = 1024

    # Transport timeouts
    rpc_timeout_sec: float = 30.0
    ws_open_timeout_sec: float = 10.0

    # Push reconnect backoff
    reconnect_base_delay_sec: float = 1.0
    reconnect_max_delay_sec: float = 60.0
    reconnect_jitter: float = 0.1
    reconnect_alert_after_sec: float = 300.0

    # Logging / stats
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: str = "logs/pool_watcher_{time:YYYY-MM-DD}.log"
    stats_interval_sec: int = 60

    @field_validator("resync_interval_sec")
    @classmethod
    def _resync_floor(cls, v: int) -> int:
        return max(v, MIN_RESYNC_INTERVAL_SEC)

    @field_validator("bus_capacity")
    @classmethod
    def _positive_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("bus_capacity must be >= 1")
        return v

    @model_validator(mode="after")
    def _derive_ws_url(self) -> "Settings":
        if not self.ws_url:
            self.ws_url = self.rpc_url.replace("https://", "wss://").replace("http://", "ws://")
        return self


settings = Settings()
