"""Test mint account decoding and the RPC-backed metadata provider."""

import struct
from unittest.mock import AsyncMock

import pytest
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from pool_watcher.exceptions import RpcError
from pool_watcher.tokens.metadata import (
    SPL_TOKEN_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    RpcTokenMetadataProvider,
    Token2022ExtType,
    TokenProgram,
    decode_mint,
    parse_extensions,
)

AUTHORITY = Pubkey.new_unique()


def _build_standard_mint(
    *,
    mint_authority: Pubkey | None = None,
    freeze_authority: Pubkey | None = None,
    supply: int = 1_000_000_000,
    decimals: int = 6,
) -> bytes:
    """Build a standard SPL Token mint account (82 bytes)."""
    data = bytearray(82)
    if mint_authority:
        struct.pack_into("<I", data, 0, 1)  # Some
        data[4:36] = bytes(mint_authority)
    struct.pack_into("<Q", data, 36, supply)
    data[44] = decimals
    data[45] = 1  # isInitialized
    if freeze_authority:
        struct.pack_into("<I", data, 46, 1)
        data[50:82] = bytes(freeze_authority)
    return bytes(data)


def _build_token2022_mint(extensions: list[tuple[int, int]], **kwargs) -> bytes:
    """Token-2022 mint: base padded to 165, AccountType::Mint, then TLV entries."""
    data = bytearray(_build_standard_mint(**kwargs))
    data += b"\x00" * (165 - len(data))
    data.append(1)
    for ext_type, ext_len in extensions:
        data += struct.pack("<HH", ext_type, ext_len)
        data += b"\x00" * ext_len
    return bytes(data)


def test_decode_standard_mint():
    raw = _build_standard_mint(mint_authority=AUTHORITY, supply=42, decimals=9)
    meta = decode_mint("mint1", SPL_TOKEN_PROGRAM_ID, raw)

    assert meta is not None
    assert meta.program == TokenProgram.SPL_TOKEN
    assert not meta.is_token2022
    assert meta.decimals == 9
    assert meta.supply == 42
    assert meta.mint_authority == str(AUTHORITY)
    assert meta.freeze_authority is None
    assert meta.extensions == []


def test_decode_token2022_mint_with_extensions():
    raw = _build_token2022_mint(
        [(Token2022ExtType.TRANSFER_FEE_CONFIG, 108), (Token2022ExtType.PERMANENT_DELEGATE, 32), (99, 4)],
        freeze_authority=AUTHORITY,
    )
    meta = decode_mint("mint2", TOKEN_2022_PROGRAM_ID, raw)

    assert meta is not None
    assert meta.is_token2022
    assert meta.freeze_authority == str(AUTHORITY)
    assert meta.extensions == ["TRANSFER_FEE_CONFIG", "PERMANENT_DELEGATE", "UNKNOWN_99"]


def test_decode_rejects_non_mints():
    raw = _build_standard_mint()
    assert decode_mint("x", "11111111111111111111111111111111", raw) is None
    assert decode_mint("x", SPL_TOKEN_PROGRAM_ID, raw[:50]) is None
    # Token-2022 token account (AccountType 2) shares the owner program
    token_account = bytearray(_build_token2022_mint([]))
    token_account[165] = 2
    assert decode_mint("x", TOKEN_2022_PROGRAM_ID, bytes(token_account)) is None


def test_parse_extensions_stops_at_zero_padding():
    raw = _build_token2022_mint([(Token2022ExtType.METADATA_POINTER, 64)]) + b"\x00" * 16
    assert parse_extensions(raw) == ["METADATA_POINTER"]
    assert parse_extensions(_build_standard_mint()) == []


@pytest.mark.asyncio
async def test_provider_retries_then_caches():
    rpc = AsyncMock()
    rpc.get_account_info.side_effect = [
        RpcError("getAccountInfo", "429 Too Many Requests"),
        RpcError("getAccountInfo", "429 Too Many Requests"),
        {"owner": SPL_TOKEN_PROGRAM_ID, "lamports": 1, "data": _build_standard_mint(decimals=5)},
    ]
    sleep = AsyncMock()
    provider = RpcTokenMetadataProvider(rpc, sleep=sleep)

    meta = await provider.resolve("mint1")
    again = await provider.resolve("mint1")

    assert meta is not None and meta.decimals == 5
    assert again is meta
    assert rpc.get_account_info.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [pytest.approx(0.2), pytest.approx(0.4)]


@pytest.mark.asyncio
async def test_provider_caches_missing_accounts():
    rpc = AsyncMock()
    rpc.get_account_info.return_value = None
    provider = RpcTokenMetadataProvider(rpc, sleep=AsyncMock())

    assert await provider.resolve("gone") is None
    assert await provider.resolve("gone") is None
    assert rpc.get_account_info.await_count == 1


@pytest.mark.asyncio
async def test_provider_gives_up_after_max_retries():
    rpc = AsyncMock()
    rpc.get_account_info.side_effect = RpcError("getAccountInfo", "timeout")
    provider = RpcTokenMetadataProvider(rpc, max_retries=3, sleep=AsyncMock())

    with pytest.raises(RpcError):
        await provider.resolve("mint1")
    assert rpc.get_account_info.await_count == 3


def test_decode_rejects_token_accounts_and_uninitialized_mints():
    # SPL token account: mint(32) owner(32) amount(8) ... 165 bytes, same owner program
    token_account = bytearray(165)
    token_account[0:32] = bytes(Pubkey.new_unique())
    token_account[32:64] = bytes(Pubkey.new_unique())
    struct.pack_into("<Q", token_account, 64, 5_000)
    token_account[108] = 1  # AccountState::Initialized
    assert decode_mint("acct", SPL_TOKEN_PROGRAM_ID, bytes(token_account)) is None
    assert decode_mint("acct", TOKEN_2022_PROGRAM_ID, bytes(token_account)) is None

    uninitialized = bytearray(_build_standard_mint())
    uninitialized[45] = 0
    assert decode_mint("x", SPL_TOKEN_PROGRAM_ID, bytes(uninitialized)) is None

    # Plain 82-byte mints are valid under Token-2022 too
    meta = decode_mint("x", TOKEN_2022_PROGRAM_ID, _build_standard_mint(decimals=2))
    assert meta is not None and meta.decimals == 2 and meta.extensions == []
