"""
Employee ID metadata documents.

Builds the ERC-721 metadata document published before a mint, and rebuilds
it for an already minted token from its on-chain record when the stored
document has been lost.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from .ports.evm.adapter import EVMChainPort
from .schemas.metadata import EmployeeMetadata, EmployeeProperties, MetadataAttribute

logger = logging.getLogger(__name__)

EXTERNAL_URL: str = "https://dunder-mifflin-id.vercel.app"
BRANCH: str = "Scranton, PA"
COMPANY: str = "Dunder Mifflin Paper Company"

#: Object storage prefix shared by share images and metadata files
STORAGE_PREFIX: str = "what-x-are-you"

_METADATA_FILENAME = re.compile(r"metadata-(\d+)-(\d+)\.json$")


def _issue_date_label(issued_at: datetime) -> str:
    """US short date, e.g. ``3/7/2025``."""
    return f"{issued_at.month}/{issued_at.day}/{issued_at.year}"


def _iso_timestamp(issued_at: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return issued_at.strftime("%Y-%m-%dT%H:%M:%S.") + f"{issued_at.microsecond // 1000:03d}Z"


def build_employee_metadata(
    character: str,
    display_name: str,
    analysis_text: str,
    fid: int,
    image_url: Optional[str],
    issued_at: Optional[datetime] = None,
) -> EmployeeMetadata:
    """
    Build the metadata document for an employee ID.

    Args:
        character: Character the user is most like.
        display_name: Name printed on the ID.
        analysis_text: Analysis summary, appended to the description when set.
        fid: Farcaster id of the holder.
        image_url: Public URL of the rendered ID card.
        issued_at: Issue time; defaults to now. Naive datetimes are taken as UTC.

    Returns:
        EmployeeMetadata: The document to publish.
    """
    if issued_at is None:
        issued_at = datetime.now(timezone.utc)
    elif issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    else:
        issued_at = issued_at.astimezone(timezone.utc)

    description = f"Official Dunder Mifflin Scranton Employee ID for {display_name}. Most like {character} from The Office."
    if analysis_text:
        description = f"{description} {analysis_text}"

    return EmployeeMetadata(
        name=f"Dunder Mifflin Employee ID - {display_name}",
        description=description,
        image=image_url,
        external_url=EXTERNAL_URL,
        attributes=[
            MetadataAttribute(trait_type="Office Character", value=character),
            MetadataAttribute(trait_type="Employee Name", value=display_name),
            MetadataAttribute(trait_type="Farcaster FID", value=str(fid)),
            MetadataAttribute(trait_type="Issue Date", value=_issue_date_label(issued_at)),
            MetadataAttribute(trait_type="Branch", value=BRANCH),
            MetadataAttribute(trait_type="Company", value=COMPANY),
        ],
        properties=EmployeeProperties(
            character=character,
            employee_name=display_name,
            fid=fid,
            analysis_text=analysis_text or "",
            issue_date=_iso_timestamp(issued_at),
            branch=BRANCH,
        ),
    )


def share_image_name_for(metadata_uri: str, fid: int) -> Optional[str]:
    """
    Derive the share image file name from a metadata URI.

    ``.../metadata-{fid}-{timestamp}.json`` maps to
    ``share-image-{fid}-{timestamp}.png``. Returns None for URIs that do
    not follow the naming scheme.
    """
    match = _METADATA_FILENAME.search(metadata_uri.rsplit("/", 1)[-1])
    if match is None:
        return None
    return f"share-image-{fid}-{match.group(2)}.png"


async def recover_employee_metadata(
    port: EVMChainPort,
    token_id: int,
    image_base_url: str,
) -> Optional[EmployeeMetadata]:
    """
    Rebuild the metadata document of a minted token from chain data.

    Args:
        port: Chain port able to read ``tokenURI`` and ``employees``.
        token_id: Token to recover.
        image_base_url: Public base URL of the object storage bucket.

    Returns:
        The rebuilt document, or None if the token URI does not point at a
        metadata file this application published.

    Raises:
        BlockchainInteractionError: If a contract read fails.
    """
    metadata_uri = await port.read_token_uri(token_id)
    record = await port.read_employee(token_id)

    image_name = share_image_name_for(metadata_uri, record.fid)
    if image_name is None:
        logger.warning("Token %d metadata URI %r is not a published metadata file, skipping", token_id, metadata_uri)
        return None

    document = build_employee_metadata(
        character=record.character,
        display_name=record.display_name,
        analysis_text=record.analysis_text,
        fid=record.fid,
        image_url=f"{image_base_url.rstrip('/')}/{STORAGE_PREFIX}/{image_name}",
        issued_at=datetime.fromtimestamp(record.minted_at, tz=timezone.utc),
    )
    logger.info("Recovered metadata for token %d (%s)", token_id, record.display_name)
    return document
