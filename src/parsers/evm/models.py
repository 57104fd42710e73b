"""Pydantic v2 models for EVM JSON-RPC log objects."""

from pydantic import BaseModel, Field, field_validator


def _hex_to_int(value: str | int | None) -> int | None:
    if value is None or isinstance(value, int):
        return value
    return int(value, 16)


class EvmLog(BaseModel):
    address: str
    topics: list[str] = []
    data: str = "0x"
    block_number: int = Field(alias="blockNumber")
    transaction_hash: str = Field(alias="transactionHash")
    log_index: int = Field(0, alias="logIndex")
    removed: bool = False

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("block_number", "log_index", mode="before")
    @classmethod
    def _parse_quantity(cls, value: str | int | None) -> int | None:
        return _hex_to_int(value)

    @property
    def key(self) -> str:
        return f"{self.transaction_hash}:{self.log_index}"
