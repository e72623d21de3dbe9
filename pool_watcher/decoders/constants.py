"""Program ids and Anchor account discriminators for supported AMM families."""

ORCA_WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
RAYDIUM_CLMM_PROGRAM_ID = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"
RAYDIUM_CPMM_PROGRAM_ID = "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"

# First 8 bytes of sha256("account:<AccountName>")
WHIRLPOOL_DISCRIMINATOR = bytes([63, 149, 209, 12, 225, 128, 99, 9])
# Raydium CLMM and CPMM both name their pool account PoolState
POOL_STATE_DISCRIMINATOR = bytes([247, 237, 227, 245, 215, 195, 222, 70])

DISCRIMINATOR_SIZE = 8
PUBKEY_SIZE = 32
