"""Decode Raydium constant-product (CPMM) PoolState accounts.

Account size: 637 bytes (8 discriminator + 629 packed struct).
  8:40    amm_config
  72:104  token_0_vault
  104:136 token_1_vault
  136:168 lp_mint
  168:200 token_0_mint
  200:232 token_1_mint
  329     status (u8 bitmask: deposit/withdraw/swap disabled)
  333:341 lp_supply (u64)
  373:381 open_time (u64 unix seconds)

Reserves are the balances of the two vault token accounts, not pool fields.
"""

from pool_watcher.decoders.base import PoolDecoder
from pool_watcher.decoders.constants import POOL_STATE_DISCRIMINATOR
from pool_watcher.decoders.layout import read_pubkey, read_u8, read_u64
from pool_watcher.models.pool import PoolRecord, ProgramKind

AMM_CONFIG_OFFSET = 8
TOKEN_0_VAULT_OFFSET = 72
TOKEN_1_VAULT_OFFSET = 104
LP_MINT_OFFSET = 136
TOKEN_0_MINT_OFFSET = 168
TOKEN_1_MINT_OFFSET = 200
STATUS_OFFSET = 329
LP_SUPPLY_OFFSET = 333
OPEN_TIME_OFFSET = 373

# Through recent_epoch; trailing padding is not read
CPMM_MIN_SIZE = 389


class RaydiumCpmmDecoder(PoolDecoder):
    kind = ProgramKind.RAYDIUM_CPMM
    discriminator = POOL_STATE_DISCRIMINATOR
    min_size = CPMM_MIN_SIZE

    def _decode(
        self, address: str, data: bytes, *, program_id: str, slot: int
    ) -> PoolRecord:
        return PoolRecord(
            address=address,
            program_kind=self.kind,
            program_id=program_id,
            mint_a=read_pubkey(data, TOKEN_0_MINT_OFFSET),
            mint_b=read_pubkey(data, TOKEN_1_MINT_OFFSET),
            vault_a=read_pubkey(data, TOKEN_0_VAULT_OFFSET),
            vault_b=read_pubkey(data, TOKEN_1_VAULT_OFFSET),
            amm_config=read_pubkey(data, AMM_CONFIG_OFFSET),
            lp_mint=read_pubkey(data, LP_MINT_OFFSET),
            lp_supply=read_u64(data, LP_SUPPLY_OFFSET),
            status=read_u8(data, STATUS_OFFSET),
            open_time=read_u64(data, OPEN_TIME_OFFSET),
            slot=slot,
        )
