"""Decode Orca Whirlpool pool accounts.

Layout from https://github.com/orca-so/whirlpools (programs/whirlpool/src/state/whirlpool.rs).
Account size: 653 bytes (8 discriminator + 645 struct).

Key field offsets:
  41:43   tick_spacing (u16)
  45:47   fee_rate (u16, hundredths of a basis point)
  49:65   liquidity (u128)
  65:81   sqrt_price (u128, Q64.64)
  81:85   tick_current_index (i32)
  101:133 token_mint_a
  133:165 token_vault_a
  181:213 token_mint_b
  213:245 token_vault_b
"""

from pool_watcher.decoders.base import PoolDecoder
from pool_watcher.decoders.constants import WHIRLPOOL_DISCRIMINATOR
from pool_watcher.decoders.layout import (
    read_i32,
    read_pubkey,
    read_u16,
    read_u128,
)
from pool_watcher.models.pool import PoolRecord, ProgramKind

TICK_SPACING_OFFSET = 41
FEE_RATE_OFFSET = 45
LIQUIDITY_OFFSET = 49
SQRT_PRICE_OFFSET = 65
TICK_CURRENT_OFFSET = 81
TOKEN_MINT_A_OFFSET = 101
TOKEN_VAULT_A_OFFSET = 133
TOKEN_MINT_B_OFFSET = 181
TOKEN_VAULT_B_OFFSET = 213

# Through fee_growth_global_b; reward infos are not read
WHIRLPOOL_MIN_SIZE = 261


class WhirlpoolDecoder(PoolDecoder):
    kind = ProgramKind.ORCA_WHIRLPOOL
    discriminator = WHIRLPOOL_DISCRIMINATOR
    min_size = WHIRLPOOL_MIN_SIZE

    def _decode(
        self, address: str, data: bytes, *, program_id: str, slot: int
    ) -> PoolRecord:
        return PoolRecord(
            address=address,
            program_kind=self.kind,
            program_id=program_id,
            mint_a=read_pubkey(data, TOKEN_MINT_A_OFFSET),
            mint_b=read_pubkey(data, TOKEN_MINT_B_OFFSET),
            vault_a=read_pubkey(data, TOKEN_VAULT_A_OFFSET),
            vault_b=read_pubkey(data, TOKEN_VAULT_B_OFFSET),
            fee_rate_bps=read_u16(data, FEE_RATE_OFFSET) // 100,
            tick_spacing=read_u16(data, TICK_SPACING_OFFSET),
            liquidity=read_u128(data, LIQUIDITY_OFFSET),
            sqrt_price_x64=read_u128(data, SQRT_PRICE_OFFSET),
            tick_current=read_i32(data, TICK_CURRENT_OFFSET),
            slot=slot,
        )
