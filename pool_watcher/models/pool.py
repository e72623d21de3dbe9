"""Pydantic v2 models for watched programs, raw account updates and pool events."""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class ProgramKind(str, Enum):
    """AMM families whose pool account layout we can decode."""

    ORCA_WHIRLPOOL = "orca_whirlpool"
    RAYDIUM_CLMM = "raydium_clmm"
    RAYDIUM_CPMM = "raydium_cpmm"


class UpdateSource(str, Enum):
    PUSH = "push"
    PULL = "pull"


class WatchedProgram(BaseModel):
    kind: ProgramKind
    program_id: str

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"{self.kind.value}:{self.program_id[:8]}"


class RawAccountUpdate(BaseModel):
    """One observed version of an account, as delivered by the feed."""

    address: str
    program_id: str
    data: bytes
    slot: int = 0
    source: UpdateSource

    model_config = {"frozen": True, "ser_json_bytes": "base64"}


class ScanResult(BaseModel):
    """Complete pull-scan of one program at a given context slot."""

    slot: int
    updates: list[RawAccountUpdate]

    model_config = {"frozen": True}

    @property
    def addresses(self) -> set[str]:
        return {u.address for u in self.updates}


class PoolRecord(BaseModel):
    """Decoded pool account.

    Fields a program family does not carry in its pool account are None
    (e.g. CPMM pools keep reserves in vault token accounts, not in the pool).
    """

    address: str
    program_kind: ProgramKind
    program_id: str
    mint_a: str
    mint_b: str
    vault_a: str | None = None
    vault_b: str | None = None
    amm_config: str | None = None
    fee_rate_bps: int | None = None
    tick_spacing: int | None = None
    liquidity: int | None = None
    sqrt_price_x64: int | None = None
    tick_current: int | None = None
    lp_mint: str | None = None
    lp_supply: int | None = None
    status: int | None = None
    open_time: int | None = None
    slot: int = 0

    model_config = {"frozen": True, "extra": "ignore"}


class AccountNew(BaseModel):
    kind: Literal["account_new"] = "account_new"
    record: PoolRecord

    model_config = {"frozen": True}

    @property
    def address(self) -> str:
        return self.record.address


class AccountUpdated(BaseModel):
    kind: Literal["account_updated"] = "account_updated"
    record: PoolRecord
    previous_record: PoolRecord

    model_config = {"frozen": True}

    @property
    def address(self) -> str:
        return self.record.address


PoolEvent = Annotated[AccountNew | AccountUpdated, Field(discriminator="kind")]
