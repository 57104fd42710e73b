"""Tests for the virtuals_amm Anchor instruction decoder."""

import hashlib
import struct

import base58
import pytest

from src.parsers.solana.decoder import (
    BorshReader,
    InstructionDecoder,
    LayoutError,
    anchor_discriminator,
)

CREATOR = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
CREATOR_ATA = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
MINT = "DoLPHiNaiXnE4uKZ3mVYqG4Jc1f8Y3GmW9vTzB2kPump"


def _borsh_str(value: str) -> bytes:
    encoded = value.encode()
    return struct.pack("<I", len(encoded)) + encoded


def _launch_data(symbol: str = "DOLPHIN", name: str = "Dolphin Ai", uri: str = "https://x.test/m.json") -> bytes:
    return anchor_discriminator("launch") + _borsh_str(symbol) + _borsh_str(name) + _borsh_str(uri)


@pytest.fixture
def decoder() -> InstructionDecoder:
    return InstructionDecoder.from_idl()


# ── Discriminators ──────────────────────────────────────────────────


def test_discriminator_is_sha256_global_prefix():
    expected = hashlib.sha256(b"global:launch").digest()[:8]
    assert anchor_discriminator("launch") == expected


def test_decoder_knows_launch(decoder):
    assert "launch" in decoder.instruction_names
    assert decoder.discriminator("launch") == anchor_discriminator("launch")
    assert decoder.account_position("launch", "creator") == 0
    assert decoder.account_position("launch", "token_mint") == 2


# ── decode ──────────────────────────────────────────────────────────


def test_decode_launch_args(decoder):
    decoded = decoder.decode(_launch_data())
    assert decoded is not None
    assert decoded.name == "launch"
    assert decoded.args == {
        "symbol": "DOLPHIN",
        "name": "Dolphin Ai",
        "uri": "https://x.test/m.json",
    }


def test_foreign_discriminator_returns_none(decoder):
    foreign = hashlib.sha256(b"global:swap_exact_in").digest()[:8] + _borsh_str("X")
    assert decoder.decode(foreign) is None


def test_short_payload_returns_none(decoder):
    assert decoder.decode(b"\x01\x02\x03") is None


def test_truncated_args_return_none(decoder):
    data = _launch_data()
    assert decoder.decode(data[:-5]) is None


def test_invalid_base58_returns_none(decoder):
    assert decoder.decode_base58("0OIl-not-base58") is None


# ── decode_launch ───────────────────────────────────────────────────


def test_decode_launch_with_indexed_accounts(decoder):
    keys = [CREATOR, CREATOR_ATA, MINT]
    data = base58.b58encode(_launch_data()).decode()

    launch = decoder.decode_launch(data, [0, 1, 2], keys)

    assert launch is not None
    assert launch.name == "Dolphin Ai"
    assert launch.symbol == "DOLPHIN"
    assert launch.token_mint == MINT
    assert launch.creator == CREATOR


def test_decode_launch_with_resolved_accounts(decoder):
    launch = decoder.decode_launch(_launch_data(), [CREATOR, CREATOR_ATA, MINT], [])
    assert launch is not None
    assert launch.token_mint == MINT


def test_decode_launch_missing_mint_account(decoder):
    keys = [CREATOR, CREATOR_ATA]
    assert decoder.decode_launch(_launch_data(), [0, 1], keys) is None


def test_decode_launch_index_out_of_range(decoder):
    keys = [CREATOR, CREATOR_ATA]
    assert decoder.decode_launch(_launch_data(), [0, 1, 7], keys) is None


def test_decode_launch_ignores_other_instructions(decoder):
    sell = decoder.discriminator("sell") + b"\x00" * 16
    assert decoder.decode_launch(sell, [0, 1, 2], [CREATOR, CREATOR_ATA, MINT]) is None


# ── BorshReader ─────────────────────────────────────────────────────


def test_borsh_reader_option_vec_and_bool():
    data = (
        b"\x01" + struct.pack("<Q", 42)  # option<u64> = Some(42)
        + b"\x00"  # option<u64> = None
        + struct.pack("<I", 2) + struct.pack("<H", 7) + struct.pack("<H", 9)  # vec<u16>
        + b"\x01"  # bool
        + (10**20).to_bytes(16, "little")  # u128
    )
    reader = BorshReader(data)
    assert reader.read({"option": "u64"}) == 42
    assert reader.read({"option": "u64"}) is None
    assert reader.read({"vec": "u16"}) == [7, 9]
    assert reader.read("bool") is True
    assert reader.read("u128") == 10**20
    assert reader.offset == len(data)


def test_borsh_reader_pubkey():
    raw = bytes(range(32))
    assert BorshReader(raw).read("publicKey") == base58.b58encode(raw).decode()


def test_borsh_reader_unsupported_type():
    with pytest.raises(LayoutError):
        BorshReader(b"\x00" * 8).read("f64")
