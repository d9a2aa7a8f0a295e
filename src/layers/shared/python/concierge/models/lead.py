"""Lead model: a local business being pitched, and everything made for it."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field, field_validator

from concierge.models.base import BaseModel, WireModel, generate_ulid, utc_now
from concierge.models.design_spec import DesignSpecification
from concierge.models.verification import VerificationReport


class LeadStatus(str, Enum):
    """Pipeline status of a lead."""

    NEW = "new"
    ANALYZING = "analyzing"
    CONTACTED = "contacted"
    NEGOTIATING = "negotiating"
    CONVERTED = "converted"


HistoryType = Literal[
    "STRATEGY",
    "IMAGE",
    "EMAIL",
    "WEBSITE_CONCEPT",
    "WEBSITE_DEPLOY",
    "WEBSITE_EDIT",
]


class BrandGuidelines(WireModel):
    """Brand DNA produced by the analyze step."""

    colors: list[str] = Field(default_factory=list)
    tone: str = ""
    suggestions: str = ""
    design_spec: DesignSpecification | None = None


class EmailDraft(WireModel):
    subject: str
    body: str


class HistoryItem(WireModel):
    """Archived piece of generated content."""

    id: str = Field(default_factory=generate_ulid)
    type: HistoryType
    timestamp: datetime = Field(default_factory=utc_now)
    content: Any = None
    metadata: dict[str, str] = Field(default_factory=dict)


class Lead(BaseModel):
    """Lead entity.

    Key Pattern:
        PK: WS#{workspace_id}
        SK: LEAD#{id}
    """

    _pk_prefix: ClassVar[str] = "WS#"
    _sk_prefix: ClassVar[str] = "LEAD#"

    workspace_id: str = Field(..., description="Owning workspace ID")
    business_name: str = Field(..., min_length=1, max_length=255)
    location: str = ""
    details: str = ""
    source_url: str | None = None
    website_url: str | None = Field(None, description="Business's own site, if found")
    phone: str | None = None
    email: str | None = None
    status: LeadStatus = LeadStatus.NEW

    brand_guidelines: BrandGuidelines | None = None
    concept_image_key: str | None = Field(None, description="S3 key of the concept image")
    website_code: str | None = None
    verification: VerificationReport | None = None
    email_draft: EmailDraft | None = None
    history: list[HistoryItem] = Field(default_factory=list)

    def get_pk(self) -> str:
        """Get partition key: WS#{workspace_id}."""
        return f"WS#{self.workspace_id}"

    def get_sk(self) -> str:
        """Get sort key: LEAD#{id}."""
        return f"LEAD#{self.id}"

    @property
    def design_spec(self) -> DesignSpecification | None:
        return self.brand_guidelines.design_spec if self.brand_guidelines else None

    def record(self, item_type: HistoryType, content: Any, **metadata: str) -> HistoryItem:
        """Append an item to the lead's content history."""
        item = HistoryItem(type=item_type, content=content, metadata=metadata)
        self.history = [*self.history, item]
        return item


class ContentIdea(PydanticBaseModel):
    title: str = ""
    format: Literal["IMAGE", "VIDEO"] = "IMAGE"
    platform: str = ""
    description: str = ""
    copy_text: str = Field("", alias="copy")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> str:
        return "VIDEO" if str(v).strip().upper() == "VIDEO" else "IMAGE"


class CampaignStrategy(PydanticBaseModel):
    """Marketing campaign plan archived in a lead's history."""

    goal: str = ""
    platforms: list[str] = Field(default_factory=list)
    strategy_summary: str
    content_ideas: list[ContentIdea] = Field(default_factory=list)


class CreateLeadRequest(PydanticBaseModel):
    """Request model for saving a lead found by the wizard."""

    business_name: str = Field(..., min_length=1, max_length=255)
    location: str = ""
    details: str = Field("", max_length=5000)
    source_url: str | None = None
    website_url: str | None = None
    phone: str | None = None
    email: str | None = None


class UpdateLeadRequest(PydanticBaseModel):
    """Request model for editing a lead in the sites manager."""

    business_name: str | None = Field(None, min_length=1, max_length=255)
    location: str | None = None
    details: str | None = Field(None, max_length=5000)
    website_url: str | None = None
    phone: str | None = None
    email: str | None = None
    status: LeadStatus | None = None
    website_code: str | None = None
    email_draft: EmailDraft | None = None
