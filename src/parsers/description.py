"""Long-form launch description: fixed section order plus the regex read-back path.

Sections, always in this order: title block, token details and tokenomics,
creator info, recent developments.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from src.parsers.evm import constants as evm
from src.parsers.models import Chain
from src.parsers.solana import constants as svm


@dataclass(frozen=True)
class ExplorerLinks:
    """Per-chain link builders for one token/creator pair."""

    tx: str
    holders: str
    account: str
    creator_profiles: tuple[tuple[str, str], ...]


def explorer_links(chain: Chain, token: str, creator: str, tx_id: str) -> ExplorerLinks:
    if chain is Chain.SOLANA:
        return ExplorerLinks(
            tx=svm.SOLSCAN_TX_URL.format(signature=tx_id),
            holders=svm.SOLSCAN_HOLDERS_URL.format(mint=token),
            account=svm.SOLSCAN_ACCOUNT_URL,
            creator_profiles=(
                ("solscan.io", svm.SOLSCAN_ACCOUNT_URL.format(address=creator)),
                ("virtuals.io", svm.VIRTUALS_PROFILE_URL.format(address=creator)),
                ("birdeye.so", svm.BIRDEYE_PROFILE_URL.format(address=creator)),
            ),
        )
    return ExplorerLinks(
        tx=evm.BASESCAN_TX_URL.format(tx_hash=tx_id),
        holders=evm.BASESCAN_HOLDERS_URL.format(token=token),
        account=evm.BASESCAN_ADDRESS_URL,
        creator_profiles=(
            ("basescan.org", evm.BASESCAN_ADDRESS_URL.format(address=creator)),
            ("virtuals.io", evm.VIRTUALS_PROFILE_URL.format(address=creator)),
        ),
    )


def format_utc(moment: datetime) -> str:
    """'Tue, 04 Mar 2025 17:20 GMT' (minute precision)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%a, %d %b %Y %H:%M GMT")


_RECENT_HEADER = "## Recent developments"


def _recent_section(
    tokens_held_display: str, holding_percentage: str, as_of: datetime, narrative: str
) -> list[str]:
    held_line = f"Number of tokens held as of {format_utc(as_of)}: {tokens_held_display}"
    if holding_percentage != "N/A":
        held_line += f" ({holding_percentage}% of initial allocation)"
    section = [_RECENT_HEADER, held_line]
    if narrative:
        section.append(narrative)
    return section


def _account_url(links: ExplorerLinks, address: str) -> str:
    return links.account.format(address=address)


def render_description(
    *,
    chain: Chain,
    launchpad: str,
    name: str,
    symbol: str,
    url: str,
    token_address: str,
    creator_address: str,
    tx_id: str,
    launched_at: datetime,
    total_supply_display: str,
    initial_tokens_display: str,
    allocation: str,
    tokens_held_display: str,
    holding_percentage: str,
    as_of: datetime,
    movement_narrative: str = "",
    liquidity_address: str | None = None,
) -> str:
    links = explorer_links(chain, token_address, creator_address, tx_id)

    header = [
        f"# {name}",
        f"URL on launchpad: {url}",
        f"Launched at: {format_utc(launched_at)}",
        f"Launched through the launchpad: {launchpad}",
        f"Launched in transaction: {links.tx}",
    ]

    tokenomics = [
        "## Token details and tokenomics",
        f"Token address: {token_address}",
        f"Token symbol: ${symbol}",
        f"Token supply: {total_supply_display}",
        f"Top holders: {links.holders}",
    ]
    if liquidity_address:
        tokenomics.append(f"Liquidity contract: {_account_url(links, liquidity_address)}")
    tokenomics.append(
        f"Creator initial number of tokens: {initial_tokens_display} ({allocation} of token supply)"
    )

    creator = ["## Creator info", f"Creator address: {creator_address}"]
    creator.extend(f"Creator on {site}: {link}" for site, link in links.creator_profiles)

    recent = _recent_section(tokens_held_display, holding_percentage, as_of, movement_narrative)

    return "\n\n".join("\n".join(section) for section in (header, tokenomics, creator, recent))


# ── Regex read-back ─────────────────────────────────────────────────

_ADDRESS = r"(0x[0-9a-fA-F]{40}|[1-9A-HJ-NP-Za-km-z]{32,44})"
_TOKEN_RE = re.compile(rf"^Token address:\s*{_ADDRESS}\s*$", re.MULTILINE)
_CREATOR_RE = re.compile(rf"^Creator address:\s*{_ADDRESS}\s*$", re.MULTILINE)
_INITIAL_RE = re.compile(r"^Creator initial number of tokens:\s*([\d,]+)", re.MULTILINE)


@dataclass(frozen=True)
class DescriptionFields:
    token_address: str | None
    creator_address: str | None
    creator_initial_tokens: str | None


def extract_description_fields(description: str) -> DescriptionFields:
    """Pull token, creator and initial allocation back out of a rendered description.

    Used only for records stored without first-class fields.
    """
    token = _TOKEN_RE.search(description)
    creator = _CREATOR_RE.search(description)
    initial = _INITIAL_RE.search(description)
    return DescriptionFields(
        token_address=token.group(1) if token else None,
        creator_address=creator.group(1) if creator else None,
        creator_initial_tokens=initial.group(1).replace(",", "") if initial else None,
    )


def replace_recent_developments(
    description: str,
    *,
    tokens_held_display: str,
    holding_percentage: str,
    as_of: datetime,
    movement_narrative: str = "",
) -> str:
    """Swap the trailing recent-developments section after a stats refresh."""
    head, _, _ = description.partition(_RECENT_HEADER)
    section = _recent_section(tokens_held_display, holding_percentage, as_of, movement_narrative)
    return head.rstrip() + "\n\n" + "\n".join(section)
