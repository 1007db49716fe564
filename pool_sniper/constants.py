from solders.pubkey import Pubkey

# ============================================
# PROGRAM IDS
# ============================================
RAYDIUM_V4_PROGRAM = Pubkey.from_string("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8")

# Compared as strings everywhere, keep it that way
WSOL_MINT = "So11111111111111111111111111111111111111112"

# ============================================
# POOL INITIALIZATION DETECTION
# ============================================
# Log fragments Raydium AMM v4 prints while running initialize2
POOL_INIT_LOG_MARKERS = ("initialize2", "init_pc_amount")

# Account positions inside the initialize2 instruction
INIT2_POOL_ID_INDEX = 4
INIT2_LP_MINT_INDEX = 7
INIT2_COIN_MINT_INDEX = 8
INIT2_PC_MINT_INDEX = 9
INIT2_MARKET_ID_INDEX = 16
INIT2_MIN_ACCOUNTS = 10

SEEN_SIGNATURE_CACHE_SIZE = 2048

# ============================================
# STRUCT OFFSETS
# ============================================
# SPL mint: Option<Pubkey> mint_authority | u64 supply | u8 decimals | bool init | Option<Pubkey> freeze
MINT_ACCOUNT_MIN_SIZE = 82
MINT_AUTHORITY_OPTION_OFFSET = 0
MINT_AUTHORITY_OFFSET = 4
MINT_SUPPLY_OFFSET = 36
MINT_DECIMALS_OFFSET = 44
MINT_FREEZE_OPTION_OFFSET = 46
MINT_FREEZE_AUTHORITY_OFFSET = 50

# Raydium LIQUIDITY_STATE_LAYOUT_V4
RAYDIUM_POOL_MIN_SIZE = 752
RAYDIUM_POOL_BASE_VAULT_OFFSET = 336
RAYDIUM_POOL_QUOTE_VAULT_OFFSET = 368
RAYDIUM_POOL_BASE_MINT_OFFSET = 400
RAYDIUM_POOL_QUOTE_MINT_OFFSET = 432
RAYDIUM_POOL_LP_MINT_OFFSET = 464
RAYDIUM_POOL_MARKET_ID_OFFSET = 528

# ============================================
# TRADING DEFAULTS
# ============================================
RAYDIUM_FEE_RATE = 0.0025  # 0.25% swap fee

# ============================================
# API ENDPOINTS
# ============================================
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEXSCREENER_API_BASE = "https://api.dexscreener.com"
