from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class Launch(Base):
    __tablename__ = "launches"

    id: Mapped[int] = mapped_column(primary_key=True)
    launchpad: Mapped[str] = mapped_column(String(100))
    chain: Mapped[str | None] = mapped_column(String(10))
    title: Mapped[str] = mapped_column(String(300))
    url: Mapped[str] = mapped_column(String(500))
    description: Mapped[str] = mapped_column(Text)
    launched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    image_url: Mapped[str | None] = mapped_column(String(500))
    launchpad_specific_id: Mapped[str | None] = mapped_column(String(100))
    tx_id: Mapped[str | None] = mapped_column(String(100))
    # Block number (Base) or slot (Solana) of the launch transaction
    launch_position: Mapped[int | None] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # First-class creator/token fields. Older rows may only carry them in the description.
    token_address: Mapped[str | None] = mapped_column(String(64), unique=True)
    creator_address: Mapped[str | None] = mapped_column(String(64))
    total_token_supply: Mapped[str | None] = mapped_column(String(40))
    creator_initial_tokens: Mapped[str | None] = mapped_column(String(40))
    tokens_for_sale: Mapped[str | None] = mapped_column(String(40))
    creator_allocation: Mapped[str | None] = mapped_column(String(20))

    # Refreshed token stats
    creator_tokens_held: Mapped[str | None] = mapped_column(String(40))
    creator_holding_percentage: Mapped[str | None] = mapped_column(String(20))
    movement_narrative: Mapped[str | None] = mapped_column(Text)
    sent_to_burn_address: Mapped[bool] = mapped_column(Boolean, default=False)
    main_selling_address: Mapped[str | None] = mapped_column(String(64))
    balance_source: Mapped[str | None] = mapped_column(String(30))
    balance_is_approximate: Mapped[bool] = mapped_column(Boolean, default=False)
    token_stats_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_launches_creator", "creator_address"),
        Index("idx_launches_launched_at", "launched_at"),
    )
