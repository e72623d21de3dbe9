"""Decode Raydium concentrated-liquidity (CLMM) PoolState accounts.

Account size: 1544 bytes. Only the leading fixed fields are read:
  9:41    amm_config
  73:105  token_mint_0
  105:137 token_mint_1
  137:169 token_vault_0
  169:201 token_vault_1
  235:237 tick_spacing (u16)
  237:253 liquidity (u128)
  253:269 sqrt_price_x64 (u128)
  269:273 tick_current (i32)

The trade fee lives in the AmmConfig account referenced by ``amm_config``
and is left unset here.
"""

from pool_watcher.decoders.base import PoolDecoder
from pool_watcher.decoders.constants import POOL_STATE_DISCRIMINATOR
from pool_watcher.decoders.layout import (
    read_i32,
    read_pubkey,
    read_u16,
    read_u128,
)
from pool_watcher.models.pool import PoolRecord, ProgramKind

AMM_CONFIG_OFFSET = 9
TOKEN_MINT_0_OFFSET = 73
TOKEN_MINT_1_OFFSET = 105
TOKEN_VAULT_0_OFFSET = 137
TOKEN_VAULT_1_OFFSET = 169
TICK_SPACING_OFFSET = 235
LIQUIDITY_OFFSET = 237
SQRT_PRICE_OFFSET = 253
TICK_CURRENT_OFFSET = 269

CLMM_MIN_SIZE = 273


class RaydiumClmmDecoder(PoolDecoder):
    kind = ProgramKind.RAYDIUM_CLMM
    discriminator = POOL_STATE_DISCRIMINATOR
    min_size = CLMM_MIN_SIZE

    def _decode(
        self, address: str, data: bytes, *, program_id: str, slot: int
    ) -> PoolRecord:
        return PoolRecord(
            address=address,
            program_kind=self.kind,
            program_id=program_id,
            mint_a=read_pubkey(data, TOKEN_MINT_0_OFFSET),
            mint_b=read_pubkey(data, TOKEN_MINT_1_OFFSET),
            vault_a=read_pubkey(data, TOKEN_VAULT_0_OFFSET),
            vault_b=read_pubkey(data, TOKEN_VAULT_1_OFFSET),
            amm_config=read_pubkey(data, AMM_CONFIG_OFFSET),
            tick_spacing=read_u16(data, TICK_SPACING_OFFSET),
            liquidity=read_u128(data, LIQUIDITY_OFFSET),
            sqrt_price_x64=read_u128(data, SQRT_PRICE_OFFSET),
            tick_current=read_i32(data, TICK_CURRENT_OFFSET),
            slot=slot,
        )
