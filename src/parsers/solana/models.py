"""Pydantic v2 models for Solana JSON-RPC responses (json encoding)."""

from typing import Any

from pydantic import BaseModel, Field

_CONFIG = {"extra": "ignore", "populate_by_name": True}


class UiTokenAmount(BaseModel):
    amount: str = "0"
    decimals: int = 0
    ui_amount_string: str | None = Field(None, alias="uiAmountString")

    model_config = _CONFIG


class TokenBalance(BaseModel):
    """Entry of meta.preTokenBalances / meta.postTokenBalances."""

    account_index: int = Field(alias="accountIndex")
    mint: str
    owner: str | None = None
    program_id: str | None = Field(None, alias="programId")
    ui_token_amount: UiTokenAmount = Field(default_factory=UiTokenAmount, alias="uiTokenAmount")

    model_config = _CONFIG

    @property
    def raw_amount(self) -> int:
        return int(self.ui_token_amount.amount)


class CompiledInstruction(BaseModel):
    program_id_index: int | None = Field(None, alias="programIdIndex")
    program_id: str | None = Field(None, alias="programId")
    accounts: list[int] | list[str] = []
    data: str = ""

    model_config = _CONFIG


class InnerInstructionSet(BaseModel):
    index: int
    instructions: list[CompiledInstruction] = []

    model_config = _CONFIG


class LoadedAddresses(BaseModel):
    writable: list[str] = []
    readonly: list[str] = []

    model_config = _CONFIG


class TransactionMeta(BaseModel):
    err: Any = None
    pre_token_balances: list[TokenBalance] = Field(default_factory=list, alias="preTokenBalances")
    post_token_balances: list[TokenBalance] = Field(default_factory=list, alias="postTokenBalances")
    inner_instructions: list[InnerInstructionSet] = Field(
        default_factory=list, alias="innerInstructions"
    )
    loaded_addresses: LoadedAddresses | None = Field(None, alias="loadedAddresses")
    log_messages: list[str] = Field(default_factory=list, alias="logMessages")

    model_config = _CONFIG


class TransactionMessage(BaseModel):
    account_keys: list[str] = Field(default_factory=list, alias="accountKeys")
    instructions: list[CompiledInstruction] = []

    model_config = _CONFIG


class TransactionBody(BaseModel):
    signatures: list[str] = []
    message: TransactionMessage = Field(default_factory=TransactionMessage)

    model_config = _CONFIG


class SolanaTransaction(BaseModel):
    """getTransaction result with maxSupportedTransactionVersion=0."""

    slot: int
    block_time: int | None = Field(None, alias="blockTime")
    transaction: TransactionBody
    meta: TransactionMeta | None = None

    model_config = _CONFIG

    @property
    def signature(self) -> str:
        return self.transaction.signatures[0] if self.transaction.signatures else ""

    @property
    def failed(self) -> bool:
        return self.meta is not None and self.meta.err is not None

    @property
    def account_keys(self) -> list[str]:
        """Static keys followed by address-lookup-table keys (v0 ordering)."""
        keys = list(self.transaction.message.account_keys)
        if self.meta and self.meta.loaded_addresses:
            keys.extend(self.meta.loaded_addresses.writable)
            keys.extend(self.meta.loaded_addresses.readonly)
        return keys

    def post_balance(self, owner: str, mint: str) -> TokenBalance | None:
        if self.meta is None:
            return None
        for balance in self.meta.post_token_balances:
            if balance.owner == owner and balance.mint == mint:
                return balance
        return None

    def pre_balance(self, owner: str, mint: str) -> TokenBalance | None:
        if self.meta is None:
            return None
        for balance in self.meta.pre_token_balances:
            if balance.owner == owner and balance.mint == mint:
                return balance
        return None


class SignatureInfo(BaseModel):
    signature: str
    slot: int
    block_time: int | None = Field(None, alias="blockTime")
    err: Any = None

    model_config = _CONFIG


class AccountInfo(BaseModel):
    """getAccountInfo value (base64 data is not needed here)."""

    owner: str
    executable: bool = False
    lamports: int = 0

    model_config = _CONFIG


class TokenAccount(BaseModel):
    """One entry of getTokenAccountsByOwner with jsonParsed encoding."""

    pubkey: str
    mint: str
    owner: str
    amount: int
    decimals: int
