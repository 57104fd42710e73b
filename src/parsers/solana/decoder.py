"""Anchor instruction decoder for the virtuals_amm program.

Built once from the static IDL in ``idl.py``. Instruction data layout:
8-byte discriminator (sha256("global:<name>")[:8]) followed by the Borsh
encoded arguments. Borsh strings are a u32 LE length prefix + UTF-8 bytes.

``decode`` never raises: unknown discriminators and truncated payloads are
a normal "not ours" result and come back as None.
"""

import hashlib
import struct
from dataclasses import dataclass
from typing import Any

import base58
from loguru import logger
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.parsers.solana.idl import VIRTUALS_AMM_IDL

LAUNCH_INSTRUCTION = "launch"

_PRIMITIVES: dict[str, str] = {
    "u8": "<B",
    "i8": "<b",
    "u16": "<H",
    "i16": "<h",
    "u32": "<I",
    "i32": "<i",
    "u64": "<Q",
    "i64": "<q",
}


class LayoutError(ValueError):
    pass


def anchor_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("global:<instruction name>")."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


@dataclass(frozen=True)
class IdlInstruction:
    name: str
    accounts: tuple[str, ...]
    args: tuple[tuple[str, Any], ...]
    discriminator: bytes


@dataclass(frozen=True)
class DecodedInstruction:
    name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class LaunchInstruction:
    name: str
    symbol: str
    uri: str
    token_mint: str
    creator: str


class BorshReader:
    """Sequential reader over a Borsh buffer."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = data
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    def _take(self, size: int) -> bytes:
        end = self._offset + size
        if size < 0 or end > len(self._data):
            raise LayoutError(f"need {size} bytes at {self._offset}, have {len(self._data)}")
        chunk = self._data[self._offset : end]
        self._offset = end
        return chunk

    def read(self, type_: Any) -> Any:
        if isinstance(type_, dict):
            if "option" in type_:
                return self.read(type_["option"]) if self.read("u8") else None
            if "vec" in type_:
                length = self.read("u32")
                return [self.read(type_["vec"]) for _ in range(length)]
            if "array" in type_:
                inner, length = type_["array"]
                return [self.read(inner) for _ in range(length)]
            raise LayoutError(f"unsupported type {type_}")

        if type_ in _PRIMITIVES:
            fmt = _PRIMITIVES[type_]
            return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]
        if type_ == "bool":
            return self._take(1)[0] != 0
        if type_ in ("u128", "i128"):
            return int.from_bytes(self._take(16), "little", signed=type_ == "i128")
        if type_ == "string":
            length = self.read("u32")
            return self._take(length).decode("utf-8")
        if type_ in ("publicKey", "pubkey"):
            return str(Pubkey.from_bytes(self._take(32)))
        if type_ == "bytes":
            return self._take(self.read("u32"))
        raise LayoutError(f"unsupported type {type_}")


class InstructionDecoder:
    """Discriminator lookup + Borsh argument decoding for one Anchor program."""

    def __init__(self, instructions: list[IdlInstruction]) -> None:
        self._by_discriminator = {ix.discriminator: ix for ix in instructions}
        self._by_name = {ix.name: ix for ix in instructions}

    @classmethod
    def from_idl(cls, idl: dict[str, Any] | None = None) -> "InstructionDecoder":
        idl = idl or VIRTUALS_AMM_IDL
        instructions = [
            IdlInstruction(
                name=ix["name"],
                accounts=tuple(ix.get("accounts", ())),
                args=tuple((arg["name"], arg["type"]) for arg in ix.get("args", ())),
                discriminator=anchor_discriminator(ix["name"]),
            )
            for ix in idl["instructions"]
        ]
        return cls(instructions)

    @property
    def instruction_names(self) -> list[str]:
        return list(self._by_name)

    def discriminator(self, name: str) -> bytes:
        return self._by_name[name].discriminator

    def decode(self, raw: bytes) -> DecodedInstruction | None:
        if len(raw) < 8:
            return None
        ix = self._by_discriminator.get(bytes(raw[:8]))
        if ix is None:
            return None

        reader = BorshReader(bytes(raw), offset=8)
        try:
            args = {name: reader.read(type_) for name, type_ in ix.args}
        except (LayoutError, UnicodeDecodeError, ValueError, struct.error) as e:
            logger.debug(f"[SVM] Malformed {ix.name} payload ({len(raw)} bytes): {e}")
            return None
        return DecodedInstruction(name=ix.name, args=args)

    def decode_base58(self, data: str) -> DecodedInstruction | None:
        try:
            raw = base58.b58decode(data)
        except ValueError:
            return None
        return self.decode(raw)

    def account_position(self, instruction: str, account: str) -> int | None:
        ix = self._by_name.get(instruction)
        if ix is None or account not in ix.accounts:
            return None
        return ix.accounts.index(account)

    def resolve_accounts(
        self,
        decoded: DecodedInstruction,
        ix_accounts: list[int] | list[str],
        account_keys: list[str],
    ) -> dict[str, str]:
        """Map IDL account names to addresses.

        ``ix_accounts`` holds either indexes into ``account_keys`` (json
        encoding) or addresses already resolved (jsonParsed). Positions that
        are missing or point outside ``account_keys`` are left out.
        """
        ix = self._by_name.get(decoded.name)
        if ix is None:
            return {}

        resolved: dict[str, str] = {}
        for position, name in enumerate(ix.accounts):
            if position >= len(ix_accounts):
                break
            entry = ix_accounts[position]
            if isinstance(entry, str):
                resolved[name] = entry
            elif 0 <= entry < len(account_keys):
                resolved[name] = account_keys[entry]
        return resolved

    def decode_launch(
        self,
        raw: bytes | str,
        ix_accounts: list[int] | list[str],
        account_keys: list[str],
    ) -> LaunchInstruction | None:
        """Decode a ``launch`` instruction with its mint and creator accounts.

        Returns None for other instructions, malformed data, or when the
        token_mint / creator accounts are absent.
        """
        decoded = self.decode_base58(raw) if isinstance(raw, str) else self.decode(raw)
        if decoded is None or decoded.name != LAUNCH_INSTRUCTION:
            return None

        accounts = self.resolve_accounts(decoded, ix_accounts, account_keys)
        token_mint = accounts.get("token_mint")
        creator = accounts.get("creator")
        if not token_mint or not creator:
            logger.debug(
                f"[SVM] launch instruction without mint/creator accounts "
                f"({len(ix_accounts)} accounts)"
            )
            return None

        return LaunchInstruction(
            name=decoded.args["name"],
            symbol=decoded.args["symbol"],
            uri=decoded.args["uri"],
            token_mint=token_mint,
            creator=creator,
        )
