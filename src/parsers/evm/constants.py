"""Virtuals Protocol (Base) bonding contract constants."""

from web3 import Web3

VIRTUALS_FACTORY_ADDRESS = "0xF66DeA7b3e897cD44A5a231c61B6B4423d613259"

LAUNCHPAD_NAME = "Virtuals Protocol (Base)"

# Bonding.sol: event Launched(address indexed token, address indexed pair, uint)
LAUNCHED_EVENT_SIGNATURE = "Launched(address,address,uint256)"
LAUNCHED_TOPIC = Web3.to_hex(Web3.keccak(text=LAUNCHED_EVENT_SIGNATURE))

TRANSFER_TOPIC = Web3.to_hex(Web3.keccak(text="Transfer(address,address,uint256)"))

SELECTOR_BALANCE_OF = Web3.keccak(text="balanceOf(address)")[:4]
SELECTOR_DECIMALS = Web3.keccak(text="decimals()")[:4]
SELECTOR_TOTAL_SUPPLY = Web3.keccak(text="totalSupply()")[:4]
SELECTOR_NAME = Web3.keccak(text="name()")[:4]
SELECTOR_SYMBOL = Web3.keccak(text="symbol()")[:4]

DEFAULT_TOTAL_SUPPLY = 1_000_000_000
DEFAULT_DECIMALS = 18

PROTOTYPE_URL = "https://app.virtuals.io/prototypes/{token}"
BASESCAN_TX_URL = "https://basescan.org/tx/{tx_hash}"
BASESCAN_HOLDERS_URL = "https://basescan.org/token/{token}#balances"
BASESCAN_ADDRESS_URL = "https://basescan.org/address/{address}"
VIRTUALS_PROFILE_URL = "https://app.virtuals.io/profile/{address}"

# Base produces a block every 2 seconds
BLOCK_TIME_SEC = 2
