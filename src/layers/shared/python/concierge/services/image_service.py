"""Image studio: website concept mockups and social media images.

Both generators are gated on the paid image capability and billed per image.
Images are kept in the assets bucket; leads store only the object key.
"""

import base64
import os
import re
from dataclasses import dataclass

import boto3
import structlog

from concierge.models.base import generate_ulid
from concierge.models.usage import CapabilityContext, UsageLedger
from concierge.services import ai_service
from concierge.services.credits import charge
from concierge.services.feature_gate import PAID_IMAGE_GENERATION, require_capability

logger = structlog.get_logger()

ASSETS_BUCKET = os.environ.get("ASSETS_BUCKET", "")

# Titan v2 sizes closest to each aspect ratio
ASPECT_RATIOS = {
    "1:1": (1024, 1024),
    "16:9": (1280, 768),
    "9:16": (768, 1280),
    "4:3": (1152, 896),
    "3:4": (896, 1152),
}

_DATA_URL_RE = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, data_url: str) -> "GeneratedImage":
        match = _DATA_URL_RE.match(data_url.strip())
        if not match:
            raise ValueError("Not a base64 image data URL")
        mime_type, encoded = match.groups()
        return cls(data=base64.b64decode(encoded), mime_type=mime_type)


def _dimensions(aspect_ratio: str) -> tuple[int, int]:
    try:
        return ASPECT_RATIOS[aspect_ratio]
    except KeyError:
        raise ValueError(f"Unsupported aspect ratio '{aspect_ratio}'") from None


def generate_website_concept_image(
    prompt: str,
    *,
    ledger: UsageLedger,
    capability: CapabilityContext | None = None,
    aspect_ratio: str = "16:9",
    skip_check: bool = False,
) -> tuple[GeneratedImage, UsageLedger]:
    """Generate a website design mockup for a business.

    Args:
        prompt: Description of the business and the site.
        ledger: Ledger debited for ``visual_pitch``.
        capability: Current capability context.
        aspect_ratio: One of ``ASPECT_RATIOS``.
        skip_check: Bypass the capability check right after selection.

    Returns:
        Tuple of (image, debited ledger).

    Raises:
        CapabilityRequiredError: If paid image generation isn't selected.
    """
    require_capability(capability, PAID_IMAGE_GENERATION, skip_check)
    width, height = _dimensions(aspect_ratio)
    full_prompt = (
        f"A professional, modern website design mockup for: {prompt}. "
        "High quality, UI/UX design, photorealistic laptop screen mockup."
    )

    image, debited = charge(
        ledger,
        "visual_pitch",
        lambda: GeneratedImage(ai_service.generate_image(full_prompt, width, height, quality="premium")),
    )
    logger.info("Website concept image generated", workspace_id=ledger.workspace_id, bytes=len(image.data))
    return image, debited


def generate_social_media_image(
    business_name: str,
    topic: str,
    *,
    ledger: UsageLedger,
    capability: CapabilityContext | None = None,
    aspect_ratio: str = "1:1",
    skip_check: bool = False,
) -> tuple[GeneratedImage, UsageLedger]:
    """Generate a social media post image for a business."""
    require_capability(capability, PAID_IMAGE_GENERATION, skip_check)
    width, height = _dimensions(aspect_ratio)
    full_prompt = (
        f"A professional social media image for {business_name}. Content: {topic}. "
        "Photorealistic, aesthetic, high quality, commercial photography."
    )

    image, debited = charge(
        ledger,
        "social_image",
        lambda: GeneratedImage(ai_service.generate_image(full_prompt, width, height)),
    )
    logger.info("Social media image generated", workspace_id=ledger.workspace_id, aspect_ratio=aspect_ratio)
    return image, debited


def store_image(workspace_id: str, image: GeneratedImage, folder: str = "concepts") -> str:
    """Upload an image to the assets bucket.

    Returns:
        The object key.
    """
    extension = image.mime_type.split("/", 1)[-1]
    key = f"{folder}/{workspace_id}/{generate_ulid()}.{extension}"
    boto3.client("s3").put_object(
        Bucket=ASSETS_BUCKET,
        Key=key,
        Body=image.data,
        ContentType=image.mime_type,
    )
    logger.info("Image stored", workspace_id=workspace_id, key=key)
    return key


def load_image(key: str) -> GeneratedImage:
    """Download an image previously stored with ``store_image``."""
    response = boto3.client("s3").get_object(Bucket=ASSETS_BUCKET, Key=key)
    return GeneratedImage(
        data=response["Body"].read(),
        mime_type=response.get("ContentType", "image/png"),
    )
