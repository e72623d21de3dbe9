"""Token metadata for pool mints: owning token program, decimals, authorities.

The watcher only carries mint addresses; consumers that want more plug in a
TokenMetadataProvider. RpcTokenMetadataProvider reads the mint account
directly and decodes the SPL Token / Token-2022 layout.
"""

import asyncio
import struct
from collections.abc import Awaitable, Callable
from enum import Enum, IntEnum
from typing import Protocol

from loguru import logger
from pydantic import BaseModel

from pool_watcher.decoders.layout import read_pubkey
from pool_watcher.exceptions import TransportError
from pool_watcher.solana.rpc_client import SolanaRpcClient

SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

# SPL Token mint layout: 82 bytes
# [0:36]   mintAuthorityOption (4) + mintAuthority (32)
# [36:44]  supply (u64)
# [44:45]  decimals (u8)
# [45:46]  isInitialized (bool)
# [46:82]  freezeAuthorityOption (4) + freezeAuthority (32)
SPL_MINT_SIZE = 82

# Token-2022 pads mints to the token account size, then an AccountType byte,
# then TLV extension entries (u16 type, u16 length, value).
TOKEN_2022_ACCOUNT_TYPE_OFFSET = 165
TOKEN_2022_TLV_OFFSET = 166


class TokenProgram(str, Enum):
    SPL_TOKEN = "spl_token"
    TOKEN_2022 = "token_2022"


class Token2022ExtType(IntEnum):
    TRANSFER_FEE_CONFIG = 1
    TRANSFER_FEE_AMOUNT = 2
    MINT_CLOSE_AUTHORITY = 3
    CONFIDENTIAL_TRANSFER_MINT = 4
    CONFIDENTIAL_TRANSFER_ACCOUNT = 5
    DEFAULT_ACCOUNT_STATE = 6
    IMMUTABLE_OWNER = 7
    MEMO_TRANSFER = 8
    NON_TRANSFERABLE = 9
    INTEREST_BEARING_CONFIG = 10
    CPI_GUARD = 11
    PERMANENT_DELEGATE = 12
    NON_TRANSFERABLE_ACCOUNT = 13
    TRANSFER_HOOK = 14
    TRANSFER_HOOK_ACCOUNT = 15
    METADATA_POINTER = 18
    TOKEN_METADATA = 19
    GROUP_POINTER = 20
    GROUP_MEMBER_POINTER = 22


class TokenMetadata(BaseModel):
    mint: str
    program: TokenProgram
    decimals: int
    supply: int
    mint_authority: str | None = None
    freeze_authority: str | None = None
    extensions: list[str] = []

    model_config = {"frozen": True}

    @property
    def is_token2022(self) -> bool:
        return self.program == TokenProgram.TOKEN_2022


class TokenMetadataProvider(Protocol):
    async def resolve(self, mint: str) -> TokenMetadata | None:
        """Metadata for ``mint``, or None if it is not a token mint."""
        ...


def _read_coption_pubkey(raw: bytes, offset: int) -> str | None:
    if struct.unpack_from("<I", raw, offset)[0] != 1:
        return None
    return read_pubkey(raw, offset + 4)


def _is_mint_layout(program: TokenProgram, raw: bytes) -> bool:
    # Token accounts share the owner program and are 165+ bytes
    if len(raw) == SPL_MINT_SIZE:
        sized = True
    elif program == TokenProgram.TOKEN_2022 and len(raw) > TOKEN_2022_ACCOUNT_TYPE_OFFSET:
        sized = raw[TOKEN_2022_ACCOUNT_TYPE_OFFSET] == 1
    else:
        sized = False
    # isInitialized
    return sized and raw[45] == 1


def parse_extensions(raw: bytes) -> list[str]:
    """Token-2022 extension names present on a mint account."""
    if len(raw) <= TOKEN_2022_TLV_OFFSET:
        return []
    names: list[str] = []
    offset = TOKEN_2022_TLV_OFFSET
    while offset + 4 <= len(raw):
        ext_type, ext_len = struct.unpack_from("<HH", raw, offset)
        if ext_type == 0 and ext_len == 0:
            break
        try:
            names.append(Token2022ExtType(ext_type).name)
        except ValueError:
            names.append(f"UNKNOWN_{ext_type}")
        offset += 4 + ext_len
    return names


def decode_mint(mint: str, owner: str, raw: bytes) -> TokenMetadata | None:
    """Decode mint account bytes; None if the account is not a mint."""
    if owner == SPL_TOKEN_PROGRAM_ID:
        program = TokenProgram.SPL_TOKEN
    elif owner == TOKEN_2022_PROGRAM_ID:
        program = TokenProgram.TOKEN_2022
    else:
        return None
    if not _is_mint_layout(program, raw):
        return None

    return TokenMetadata(
        mint=mint,
        program=program,
        mint_authority=_read_coption_pubkey(raw, 0),
        supply=struct.unpack_from("<Q", raw, 36)[0],
        decimals=raw[44],
        freeze_authority=_read_coption_pubkey(raw, 46),
        extensions=parse_extensions(raw) if program == TokenProgram.TOKEN_2022 else [],
    )


class RpcTokenMetadataProvider:
    """Resolves mints through getAccountInfo, cached per mint.

    Transient RPC failures are retried with exponential backoff
    (200ms doubling, 5 attempts) before giving up.
    """

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        max_retries: int = 5,
        initial_delay: float = 0.2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rpc = rpc
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._sleep = sleep
        self._cache: dict[str, TokenMetadata | None] = {}

    async def resolve(self, mint: str) -> TokenMetadata | None:
        if mint in self._cache:
            return self._cache[mint]
        account = await self._get_account_retry(mint)
        metadata = None
        if account is not None:
            metadata = decode_mint(mint, account["owner"], account["data"])
        self._cache[mint] = metadata
        return metadata

    async def _get_account_retry(self, mint: str) -> dict | None:
        delay = self._initial_delay
        for attempt in range(self._max_retries):
            try:
                return await self._rpc.get_account_info(mint)
            except TransportError as e:
                if attempt + 1 >= self._max_retries:
                    raise
                logger.debug(f"[MINT] getAccountInfo {mint[:12]} failed ({e}), retry in {delay:.1f}s")
                await self._sleep(delay)
                delay *= 2
        return None
