"""Test Orca Whirlpool pool account decoder."""

import pytest
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from pool_watcher.decoders.orca_whirlpool import WHIRLPOOL_MIN_SIZE, WhirlpoolDecoder
from pool_watcher.exceptions import ShortPayload, UnrecognizedLayout
from pool_watcher.models.pool import ProgramKind

PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"


def test_decode_valid_whirlpool(whirlpool_bytes):
    mint_a, mint_b = Pubkey.new_unique(), Pubkey.new_unique()
    vault_a, vault_b = Pubkey.new_unique(), Pubkey.new_unique()
    data = whirlpool_bytes(
        mint_a=mint_a,
        mint_b=mint_b,
        vault_a=vault_a,
        vault_b=vault_b,
        tick_spacing=64,
        fee_rate=3000,
        liquidity=2**100 + 7,
        sqrt_price=2**64 * 3,
        tick_current=-1234,
    )

    record = WhirlpoolDecoder().decode("pool_addr", data, program_id=PROGRAM_ID, slot=77)

    assert record.address == "pool_addr"
    assert record.program_kind == ProgramKind.ORCA_WHIRLPOOL
    assert record.program_id == PROGRAM_ID
    assert record.mint_a == str(mint_a)
    assert record.mint_b == str(mint_b)
    assert record.vault_a == str(vault_a)
    assert record.vault_b == str(vault_b)
    assert record.tick_spacing == 64
    assert record.fee_rate_bps == 30  # 3000 hundredths of a bp
    assert record.liquidity == 2**100 + 7
    assert record.sqrt_price_x64 == 2**64 * 3
    assert record.tick_current == -1234
    assert record.slot == 77
    assert record.lp_mint is None
    assert record.amm_config is None


def test_decode_accepts_exact_minimum_size(whirlpool_bytes):
    data = whirlpool_bytes(mint_a=Pubkey.new_unique(), mint_b=Pubkey.new_unique())
    record = WhirlpoolDecoder().decode(
        "pool_addr", data[:WHIRLPOOL_MIN_SIZE], program_id=PROGRAM_ID
    )
    assert record.slot == 0


@pytest.mark.parametrize("size", [0, 7, 8, 100, WHIRLPOOL_MIN_SIZE - 1])
def test_short_payload(whirlpool_bytes, size):
    data = whirlpool_bytes(mint_a=Pubkey.new_unique(), mint_b=Pubkey.new_unique())
    with pytest.raises(ShortPayload) as exc_info:
        WhirlpoolDecoder().decode("pool_addr", data[:size], program_id=PROGRAM_ID)
    assert exc_info.value.size == size
    assert exc_info.value.minimum == WHIRLPOOL_MIN_SIZE


def test_wrong_discriminator(whirlpool_bytes):
    data = bytearray(whirlpool_bytes(mint_a=Pubkey.new_unique(), mint_b=Pubkey.new_unique()))
    data[0:8] = b"\x00" * 8
    with pytest.raises(UnrecognizedLayout) as exc_info:
        WhirlpoolDecoder().decode("pool_addr", bytes(data), program_id=PROGRAM_ID)
    assert exc_info.value.discriminator == b"\x00" * 8


def test_decoding_is_deterministic(whirlpool_bytes):
    data = whirlpool_bytes(mint_a=Pubkey.new_unique(), mint_b=Pubkey.new_unique())
    decoder = WhirlpoolDecoder()
    first = decoder.decode("pool_addr", data, program_id=PROGRAM_ID, slot=5)
    second = decoder.decode("pool_addr", data, program_id=PROGRAM_ID, slot=5)
    assert first == second
