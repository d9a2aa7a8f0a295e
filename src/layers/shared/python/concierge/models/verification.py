"""Verification results: how closely a built site matches its design spec."""

from typing import Any, Literal

from pydantic import Field, field_validator

from concierge.models.base import WireModel

# Minimum overall score for a build to pass without review
PASS_THRESHOLD = 85

Severity = Literal["critical", "major", "minor"]
SEVERITIES: tuple[Severity, ...] = ("critical", "major", "minor")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class Discrepancy(WireModel):
    """One element of the build that differs from the spec."""

    element: str = ""
    severity: Severity = "major"
    expected: str = ""
    actual: str = ""

    @field_validator("element", "expected", "actual", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> str:
        """Unknown severities are treated as major."""
        severity = _as_text(v).strip().lower()
        return severity if severity in SEVERITIES else "major"


class MissingAsset(WireModel):
    type: str = ""
    description: str = ""
    placement: str = ""
    required: bool = False

    @field_validator("type", "description", "placement", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("required", mode="before")
    @classmethod
    def coerce_required(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in ("true", "yes", "1")
        return bool(v)


class VerificationResult(WireModel):
    """Scored comparison of a build against a design spec.

    Results are re-derived on every build; never patch one in place.
    """

    overall_match_score: int = 0
    color_match_score: int = 0
    layout_match_score: int = 0
    typography_match_score: int = 0
    discrepancies: list[Discrepancy] = Field(default_factory=list)
    missing_assets: list[MissingAsset] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    @field_validator(
        "overall_match_score",
        "color_match_score",
        "layout_match_score",
        "typography_match_score",
        mode="before",
    )
    @classmethod
    def coerce_score(cls, v: Any) -> int:
        """Round and clamp model-reported scores into 0..100."""
        try:
            score = round(float(v))
        except (TypeError, ValueError, OverflowError):
            return 0
        return max(0, min(100, score))

    @field_validator("recommendations", mode="before")
    @classmethod
    def coerce_recommendations(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [_as_text(item) for item in v if item]

    @property
    def passed(self) -> bool:
        """Score at or above the threshold AND nothing flagged."""
        return self.overall_match_score >= PASS_THRESHOLD and not self.discrepancies

    @property
    def needs_review(self) -> bool:
        return not self.passed

    def grouped_by_severity(self) -> dict[str, list[Discrepancy]]:
        """Group discrepancies for display, keeping the reported order in each group."""
        groups: dict[str, list[Discrepancy]] = {severity: [] for severity in SEVERITIES}
        for discrepancy in self.discrepancies:
            groups[discrepancy.severity].append(discrepancy)
        return groups


class VerificationReport(WireModel):
    """Outcome of a verification attempt.

    ``unavailable`` means the verifier produced nothing usable. It is not a
    pass and must never be shown as one.
    """

    status: Literal["passed", "needs_review", "unavailable"]
    result: VerificationResult | None = None
    reason: str | None = None

    @classmethod
    def from_result(cls, result: VerificationResult) -> "VerificationReport":
        return cls(status="passed" if result.passed else "needs_review", result=result)

    @classmethod
    def unavailable(cls, reason: str) -> "VerificationReport":
        return cls(status="unavailable", reason=reason)

    @property
    def passed(self) -> bool:
        return self.status == "passed"
