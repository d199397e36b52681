"""
ERC-721 metadata document models for the employee ID collectible.

The document layout (name, description, image, external_url, attributes and
properties) is what wallets and marketplaces read from the token URI.
"""

from typing import List, Optional

from pydantic import ConfigDict, Field

from .bases import CanonicalModel


class MetadataAttribute(CanonicalModel):
    """One marketplace trait."""
    trait_type: str
    value: str


class EmployeeProperties(CanonicalModel):
    """Free-form ``properties`` block mirroring the on-chain employee record."""

    model_config = ConfigDict(populate_by_name=True)

    character: str
    employee_name: str = Field(..., alias="employeeName")
    fid: int = Field(..., ge=0)
    analysis_text: str = Field(default="", alias="analysisText")
    issue_date: str = Field(..., alias="issueDate", description="ISO-8601 issue timestamp")
    branch: str


class EmployeeMetadata(CanonicalModel):
    """
    Token metadata document published before minting.

    Attributes:
        name: Token display name
        description: Long description including the analysis text
        image: Public URL of the rendered ID card image
        external_url: Link back to the mini-app
        attributes: Marketplace traits
        properties: Structured copy of the employee record
    """

    name: str
    description: str
    image: Optional[str] = None
    external_url: str
    attributes: List[MetadataAttribute] = Field(default_factory=list)
    properties: EmployeeProperties

    def to_document(self) -> dict:
        """Serialize with the camelCase keys expected by consumers."""
        return self.model_dump(mode="json", by_alias=True)


class EmployeeRecord(CanonicalModel):
    """On-chain ``employees(tokenId)`` record."""

    token_id: int = Field(..., ge=0)
    character: str
    display_name: str
    analysis_text: str = ""
    minted_at: int = Field(..., ge=0, description="Unix timestamp of the mint")
    fid: int = Field(..., ge=0)
