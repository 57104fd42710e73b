from datetime import datetime

from pydantic import BaseModel, Field

from src.parsers.models import Chain


class VirtualsImage(BaseModel):
    url: str | None = None

    model_config = {"extra": "ignore"}


class VirtualsPrototype(BaseModel):
    """One entry of api.virtuals.io /api/virtuals (list item or populated detail)."""

    id: int
    uid: str | None = None
    name: str | None = None
    symbol: str | None = None
    description: str | None = None
    chain: str | None = None
    status: str | None = None
    created_at: datetime | None = Field(None, alias="createdAt")
    pre_token: str | None = Field(None, alias="preToken")
    pre_token_pair: str | None = Field(None, alias="preTokenPair")
    wallet_address: str | None = Field(None, alias="walletAddress")
    image: VirtualsImage | None = None

    model_config = {"extra": "ignore", "populate_by_name": True}

    @property
    def image_url(self) -> str | None:
        return self.image.url if self.image else None

    @property
    def launch_chain(self) -> Chain | None:
        """Chain the token lives on; None for chains this scanner does not follow."""
        try:
            return Chain((self.chain or "").lower())
        except ValueError:
            return None
