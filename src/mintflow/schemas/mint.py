"""
Mint workflow data models.

Value objects that flow through the mint workflow: the caller's wallet/user
context, the quiz analysis result, the immutable ``MintRequest`` snapshot,
and allowance observations.
"""

from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from .bases import CanonicalModel


class UserContext(CanonicalModel):
    """
    Identity of the user initiating a mint.

    Attributes:
        fid: Farcaster id of the user
        display_name: Name printed on the collectible
        username: Optional handle, used when ``display_name`` is empty
    """

    fid: int = Field(..., ge=0, description="Farcaster id")
    display_name: str = Field(default="", description="Display name printed on the collectible")
    username: Optional[str] = Field(None, description="Fallback handle")

    @property
    def resolved_name(self) -> str:
        return self.display_name or self.username or f"FID {self.fid}"


class AnalysisResult(CanonicalModel):
    """Outcome of the personality analysis that the collectible records."""

    character: str = Field(..., min_length=1, description="Character the user is most like")
    analysis_text: str = Field(default="", description="Short analysis summary")
    image_url: Optional[str] = Field(None, description="Rendered share image URL, if any")


class MintRequest(CanonicalModel):
    """
    Immutable snapshot of everything needed to submit ``mintEmployeeID``.

    Captured once, after prerequisites pass and metadata is published, and
    passed unchanged through approval, synchronization and every retry.
    """

    model_config = ConfigDict(frozen=True)

    character: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    analysis_text: str = Field(default="")
    fid: int = Field(..., ge=0)
    metadata_url: str = Field(..., min_length=1)
    owner: str = Field(..., description="Wallet address the collectible is minted to")

    @field_validator("metadata_url")
    @classmethod
    def _stable_url(cls, value: str) -> str:
        if not value.startswith(("https://", "http://", "ipfs://", "ar://")):
            raise ValueError(f"metadata_url is not a stable URL: {value!r}")
        return value


class AllowanceSnapshot(CanonicalModel):
    """Read-only projection of an on-chain allowance at a point in time."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., ge=0)
    observed_at: float = Field(..., description="Clock reading when the allowance was read")

    def covers(self, required: int) -> bool:
        return self.amount >= required

