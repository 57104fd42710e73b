"""Instruction layouts of the virtuals_amm Anchor program (IDL v0.1.0).

Only what the decoder needs: instruction names, ordered account names and
Borsh argument layouts.
"""

from typing import Any

VIRTUALS_AMM_IDL: dict[str, Any] = {
    "version": "0.1.0",
    "name": "virtuals_amm",
    "instructions": [
        {
            "name": "buy",
            "accounts": [
                "user",
                "vpool",
                "token_mint",
                "user_virtuals_ata",
                "user_token_ata",
                "vpool_token_ata",
                "platform_prototype",
                "platform_prototype_virtuals_ata",
                "vpool_virtuals_ata",
                "token_program",
            ],
            "args": [
                {"name": "amount", "type": "u64"},
                {"name": "max_amount_out", "type": "u64"},
            ],
        },
        {
            "name": "claim_fees",
            "accounts": ["payer", "vpool", "virtuals_mint", "token_mint"],
            "args": [],
        },
        {
            "name": "create_meteora_pool",
            "accounts": ["vpool", "meteora_deployer"],
            "args": [],
        },
        {
            "name": "initialize",
            "accounts": [
                "payer",
                "virtuals_mint",
                "token_mint",
                "vpool_virtuals_ata",
                "vpool_token_ata",
                "vpool",
                "token_program",
                "associated_token_program",
                "system_program",
            ],
            "args": [],
        },
        {
            "name": "initialize_meteora_accounts",
            "accounts": ["vpool", "meteora_deployer"],
            "args": [],
        },
        {
            "name": "launch",
            "accounts": [
                "creator",
                "creator_virtuals_ata",
                "token_mint",
                "platform_prototype",
                "platform_prototype_virtuals_ata",
                "vpool",
                "token_metadata",
                "metadata_program",
                "token_program",
                "associated_token_program",
                "system_program",
                "rent",
            ],
            "args": [
                {"name": "symbol", "type": "string"},
                {"name": "name", "type": "string"},
                {"name": "uri", "type": "string"},
            ],
        },
        {
            "name": "sell",
            "accounts": [
                "user",
                "vpool",
                "token_mint",
                "user_virtuals_ata",
                "user_token_ata",
                "vpool_token_ata",
                "platform_prototype",
                "platform_prototype_virtuals_ata",
                "vpool_virtuals_ata",
                "token_program",
            ],
            "args": [
                {"name": "amount", "type": "u64"},
                {"name": "min_amount_out", "type": "u64"},
            ],
        },
        {
            "name": "update_pool_creator",
            "accounts": [
                "creator",
                "new_creator",
                "virtuals_mint",
                "token_mint",
                "new_creator_virtuals_ata",
                "new_creator_token_ata",
                "vpool",
                "token_program",
                "associated_token_program",
                "system_program",
            ],
            "args": [],
        },
    ],
}
