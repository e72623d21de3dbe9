"""Shared test fixtures: pool account byte builders and watched programs."""

import struct
from collections.abc import Callable

import pytest
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from pool_watcher.decoders.constants import (
    POOL_STATE_DISCRIMINATOR,
    WHIRLPOOL_DISCRIMINATOR,
)
from pool_watcher.models.pool import (
    ProgramKind,
    RawAccountUpdate,
    UpdateSource,
    WatchedProgram,
)

WHIRLPOOL_ACCOUNT_SIZE = 653
CLMM_ACCOUNT_SIZE = 1544
CPMM_ACCOUNT_SIZE = 637

WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"


def _pack_u128(buf: bytearray, offset: int, value: int) -> None:
    struct.pack_into("<2Q", buf, offset, value & (2**64 - 1), value >> 64)


def build_whirlpool(
    *,
    mint_a: Pubkey,
    mint_b: Pubkey,
    vault_a: Pubkey | None = None,
    vault_b: Pubkey | None = None,
    tick_spacing: int = 64,
    fee_rate: int = 3000,
    liquidity: int = 1_000_000,
    sqrt_price: int = 2**64,
    tick_current: int = 0,
) -> bytes:
    buf = bytearray(WHIRLPOOL_ACCOUNT_SIZE)
    buf[0:8] = WHIRLPOOL_DISCRIMINATOR
    struct.pack_into("<H", buf, 41, tick_spacing)
    struct.pack_into("<H", buf, 45, fee_rate)
    _pack_u128(buf, 49, liquidity)
    _pack_u128(buf, 65, sqrt_price)
    struct.pack_into("<i", buf, 81, tick_current)
    buf[101:133] = bytes(mint_a)
    buf[133:165] = bytes(vault_a or Pubkey.new_unique())
    buf[181:213] = bytes(mint_b)
    buf[213:245] = bytes(vault_b or Pubkey.new_unique())
    return bytes(buf)


def build_clmm_pool(
    *,
    amm_config: Pubkey,
    mint_0: Pubkey,
    mint_1: Pubkey,
    tick_spacing: int = 10,
    liquidity: int = 5_000,
    sqrt_price_x64: int = 2**64,
    tick_current: int = -42,
) -> bytes:
    buf = bytearray(CLMM_ACCOUNT_SIZE)
    buf[0:8] = POOL_STATE_DISCRIMINATOR
    buf[9:41] = bytes(amm_config)
    buf[73:105] = bytes(mint_0)
    buf[105:137] = bytes(mint_1)
    buf[137:169] = bytes(Pubkey.new_unique())
    buf[169:201] = bytes(Pubkey.new_unique())
    struct.pack_into("<H", buf, 235, tick_spacing)
    _pack_u128(buf, 237, liquidity)
    _pack_u128(buf, 253, sqrt_price_x64)
    struct.pack_into("<i", buf, 269, tick_current)
    return bytes(buf)


def build_cpmm_pool(
    *,
    amm_config: Pubkey,
    mint_0: Pubkey,
    mint_1: Pubkey,
    lp_mint: Pubkey,
    status: int = 0,
    lp_supply: int = 10_000,
    open_time: int = 1_700_000_000,
) -> bytes:
    buf = bytearray(CPMM_ACCOUNT_SIZE)
    buf[0:8] = POOL_STATE_DISCRIMINATOR
    buf[8:40] = bytes(amm_config)
    buf[72:104] = bytes(Pubkey.new_unique())
    buf[104:136] = bytes(Pubkey.new_unique())
    buf[136:168] = bytes(lp_mint)
    buf[168:200] = bytes(mint_0)
    buf[200:232] = bytes(mint_1)
    buf[329] = status
    struct.pack_into("<Q", buf, 333, lp_supply)
    struct.pack_into("<Q", buf, 373, open_time)
    return bytes(buf)


@pytest.fixture
def whirlpool_program() -> WatchedProgram:
    return WatchedProgram(kind=ProgramKind.ORCA_WHIRLPOOL, program_id=WHIRLPOOL_PROGRAM_ID)


@pytest.fixture
def mints() -> tuple[Pubkey, Pubkey]:
    return Pubkey.new_unique(), Pubkey.new_unique()


@pytest.fixture
def whirlpool_update(
    whirlpool_program: WatchedProgram, mints: tuple[Pubkey, Pubkey]
) -> Callable[..., RawAccountUpdate]:
    """Factory: a Whirlpool account update; ``liquidity`` varies the content."""

    vaults = (Pubkey.new_unique(), Pubkey.new_unique())

    def _make(
        address: str,
        *,
        liquidity: int = 1_000_000,
        slot: int = 100,
        source: UpdateSource = UpdateSource.PUSH,
    ) -> RawAccountUpdate:
        data = build_whirlpool(
            mint_a=mints[0],
            mint_b=mints[1],
            vault_a=vaults[0],
            vault_b=vaults[1],
            liquidity=liquidity,
        )
        return RawAccountUpdate(
            address=address,
            program_id=whirlpool_program.program_id,
            data=data,
            slot=slot,
            source=source,
        )

    return _make


@pytest.fixture
def whirlpool_bytes() -> Callable[..., bytes]:
    return build_whirlpool


@pytest.fixture
def clmm_bytes() -> Callable[..., bytes]:
    return build_clmm_pool


@pytest.fixture
def cpmm_bytes() -> Callable[..., bytes]:
    return build_cpmm_pool
