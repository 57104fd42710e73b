"""Virtuals Protocol (Solana) program constants."""

VIRTUALS_PROGRAM_ID = "5U3EU2ubXtK84QcRjWVmYt9RaDyA8gKxdUrPFXmZyaki"

LAUNCHPAD_NAME = "VIRTUALS Protocol (Solana)"

# Anchor logs the instruction name in PascalCase: "Program log: Instruction: Launch"
INSTRUCTION_LAUNCH_LOG = "Instruction: Launch"

# Seed of the bonding pool PDA: ["vpool", token_mint]
VPOOL_SEED = b"vpool"

# Virtuals mints every launch with a fixed supply
DEFAULT_TOTAL_SUPPLY = 1_000_000_000
DEFAULT_DECIMALS = 9

PROTOTYPE_URL = "https://app.virtuals.io/prototypes/{mint}"
SOLSCAN_TX_URL = "https://solscan.io/tx/{signature}"
SOLSCAN_ACCOUNT_URL = "https://solscan.io/account/{address}"
SOLSCAN_HOLDERS_URL = "https://solscan.io/token/{mint}#holders"
BIRDEYE_PROFILE_URL = "https://birdeye.so/profile/{address}?chain=solana"
VIRTUALS_PROFILE_URL = "https://app.virtuals.io/profile/{address}"
