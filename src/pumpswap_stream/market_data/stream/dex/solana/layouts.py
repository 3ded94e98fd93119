"""
Binary layouts for Pump.fun and PumpSwap instructions and events.

Instruction argument structs start after the 8-byte instruction
discriminator. Event structs start at byte 0 of the inner-instruction data,
i.e. they include the 8-byte emit_cpi tag and 8-byte event discriminator.
Fee fields are signed, amounts unsigned; this mirrors the program IDLs.
"""

from construct import Struct, Bytes, Int8ul, Int16ul, Int64ul, Int64sl

# Anchor emit_cpi! prefix on every self-CPI event
EMIT_CPI_TAG = bytes([228, 69, 165, 46, 81, 203, 154, 29])


# ============================================================================
# Pump.fun (bonding curve)
# ============================================================================

MIGRATE_IX_DISCRIMINATOR = bytes([155, 234, 231, 146, 236, 158, 162, 30])
MIGRATE_EVENT_DISCRIMINATOR = EMIT_CPI_TAG + bytes([189, 233, 93, 185, 92, 148, 234, 148])

# Minimum account references on a migrate instruction; mint is ref[2]
MIGRATE_MIN_ACCOUNTS = 24

MIGRATE_EVENT = Struct(
    "discriminator" / Bytes(16),
    "user" / Bytes(32),                 # @16
    "mint" / Bytes(32),                 # @48
    "mint_amount" / Int64ul,            # @80
    "sol_amount" / Int64ul,             # @88
    "pool_migration_fee" / Int64ul,     # @96
    "bonding_curve" / Bytes(32),        # @104
    "timestamp" / Int64sl,              # @136
    "pool" / Bytes(32),                 # @144
)


# ============================================================================
# PumpSwap (AMM)
# ============================================================================

BUY_IX_DISCRIMINATOR = bytes([102, 6, 61, 18, 1, 218, 235, 234])
SELL_IX_DISCRIMINATOR = bytes([51, 230, 133, 164, 1, 127, 131, 173])
CREATE_POOL_IX_DISCRIMINATOR = bytes([233, 146, 209, 142, 207, 104, 64, 188])

BUY_EVENT_DISCRIMINATOR = EMIT_CPI_TAG + bytes([103, 244, 82, 31, 44, 245, 119, 119])
SELL_EVENT_DISCRIMINATOR = EMIT_CPI_TAG + bytes([62, 47, 55, 10, 165, 3, 220, 42])
CREATE_POOL_EVENT_DISCRIMINATOR = EMIT_CPI_TAG + bytes([177, 49, 12, 210, 160, 118, 167, 116])

# pool, user/creator, (unused), base_mint, quote_mint
AMM_MIN_ACCOUNTS = 5

CREATE_POOL_ARGS = Struct(
    "index" / Int16ul,
    "base_amount_in" / Int64ul,
    "quote_amount_in" / Int64ul,
)

BUY_ARGS = Struct(
    "base_amount_out" / Int64ul,
    "max_quote_amount_in" / Int64ul,
)

SELL_ARGS = Struct(
    "base_amount_in" / Int64ul,
    "min_quote_amount_out" / Int64ul,
)

# Buy and sell events share the same prefix up to the user-side quote amount
TRADE_EVENT = Struct(
    "discriminator" / Bytes(16),
    "timestamp" / Int64sl,                      # @16
    "base_amount" / Int64ul,                    # @24
    "quote_amount_limit" / Int64ul,             # @32
    "user_base_token_reserves" / Int64ul,       # @40
    "user_quote_token_reserves" / Int64ul,      # @48
    "pool_base_token_reserves" / Int64ul,       # @56
    "pool_quote_token_reserves" / Int64ul,      # @64
    "quote_amount" / Int64ul,                   # @72
    "lp_fee_basis_points" / Int64ul,            # @80
    "lp_fee" / Int64sl,                         # @88
    "protocol_fee_basis_points" / Int64ul,      # @96
    "protocol_fee" / Int64sl,                   # @104
    "quote_amount_with_lp_fee" / Int64ul,       # @112
    "user_quote_amount" / Int64ul,              # @120
)

CREATE_POOL_EVENT = Struct(
    "discriminator" / Bytes(16),
    "timestamp" / Int64sl,              # @16
    "index" / Int16ul,                  # @24
    "creator" / Bytes(32),              # @26
    "base_mint" / Bytes(32),            # @58
    "quote_mint" / Bytes(32),           # @90
    "base_mint_decimals" / Int8ul,      # @122
    "quote_mint_decimals" / Int8ul,     # @123
)
