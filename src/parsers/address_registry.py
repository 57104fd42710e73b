"""Known-address registry: burn sinks, lockers, DEX routers and launch pools.

One instance per process, injected into the movement classifier and the
pipeline. Entries are only ever appended.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger


class AddressKind(str, Enum):
    BURN = "burn"
    LOCK = "lock"
    DEX = "dex"
    LAUNCH_POOL = "launch_pool"


@dataclass(frozen=True)
class KnownAddress:
    label: str
    kind: AddressKind


# Solana system program and incinerator have no usable private key.
SOLANA_BURN_ADDRESSES = (
    "11111111111111111111111111111111",
    "1nc1nerator11111111111111111111111111111111",
)

EVM_BURN_ADDRESSES = (
    "0x0000000000000000000000000000000000000000",
    "0x000000000000000000000000000000000000dEaD",
)

_SEED: dict[str, tuple[tuple[str, KnownAddress], ...]] = {
    "solana": (
        (SOLANA_BURN_ADDRESSES[0], KnownAddress("System Program (null address)", AddressKind.BURN)),
        (SOLANA_BURN_ADDRESSES[1], KnownAddress("Solana incinerator", AddressKind.BURN)),
        ("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8", KnownAddress("Raydium AMM v4", AddressKind.DEX)),
        ("CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK", KnownAddress("Raydium CLMM", AddressKind.DEX)),
        ("CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C", KnownAddress("Raydium CPMM", AddressKind.DEX)),
        ("JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4", KnownAddress("Jupiter aggregator v6", AddressKind.DEX)),
        ("whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc", KnownAddress("Orca Whirlpool", AddressKind.DEX)),
        ("cpamdpZCGKUy5JxQXB4dcpGPiikHawvSWAd6mEn1sGG", KnownAddress("Meteora DAMM v2", AddressKind.DEX)),
        ("LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo", KnownAddress("Meteora DLMM", AddressKind.DEX)),
        ("strmRqUCoQUgGUan5YhzUZa6KqdzwX5L6FpUxfmKg5m", KnownAddress("Streamflow timelock", AddressKind.LOCK)),
        ("LocpQgucEQHbqNABEYvBvwoxCPsSbG91A1QaQhQQqjn", KnownAddress("Jupiter Lock", AddressKind.LOCK)),
    ),
    "base": (
        (EVM_BURN_ADDRESSES[0], KnownAddress("Null address", AddressKind.BURN)),
        (EVM_BURN_ADDRESSES[1], KnownAddress("Dead address", AddressKind.BURN)),
        ("0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24", KnownAddress("Uniswap V2 Router", AddressKind.DEX)),
        ("0x2626664c2603336E57B271c5C0b26F421741e481", KnownAddress("Uniswap V3 SwapRouter02", AddressKind.DEX)),
        ("0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD", KnownAddress("Uniswap Universal Router", AddressKind.DEX)),
        ("0xcF77a3Ba9A5CA399B7c97c74d54e5b1Beb874E43", KnownAddress("Aerodrome Router", AddressKind.DEX)),
        ("0x8292B43aB73EfAC11FAF357419C38ACF448202C5", KnownAddress("Virtuals bonding router", AddressKind.DEX)),
    ),
}


def _key(address: str) -> str:
    # EVM addresses compare case-insensitively, base58 is case-sensitive.
    return address.lower() if address.startswith("0x") else address


class AddressRegistry:
    """Append-only address -> KnownAddress mapping, keyed per chain."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, KnownAddress]] = {}

    @classmethod
    def with_defaults(cls) -> "AddressRegistry":
        registry = cls()
        for chain, entries in _SEED.items():
            for address, known in entries:
                registry.register(chain, address, known.label, known.kind)
        return registry

    def register(self, chain: str, address: str, label: str, kind: AddressKind) -> bool:
        """Add an entry. Existing entries are never replaced; returns False if present."""
        bucket = self._entries.setdefault(chain, {})
        key = _key(address)
        if key in bucket:
            return False
        bucket[key] = KnownAddress(label=label, kind=kind)
        logger.debug(f"[REGISTRY] {chain} {address} -> {label} ({kind.value})")
        return True

    def lookup(self, chain: str, address: str) -> KnownAddress | None:
        return self._entries.get(chain, {}).get(_key(address))

    def is_burn(self, chain: str, address: str) -> bool:
        known = self.lookup(chain, address)
        return known is not None and known.kind is AddressKind.BURN

    def __contains__(self, item: tuple[str, str]) -> bool:
        chain, address = item
        return self.lookup(chain, address) is not None

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._entries.values())
