"""Wizard API handler.

Each step of the wizard is one logical action: it debits the workspace
ledger once, calls the model, and writes the lead only after success. The
debited ledger is saved whether the step succeeded or not.
"""

import json
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as PydanticValidationError

from concierge.models.design_spec import DesignSpecification
from concierge.models.lead import BrandGuidelines, Lead, LeadStatus
from concierge.models.usage import CapabilityContext, UsageLedger
from concierge.models.verification import Discrepancy, VerificationReport
from concierge.repositories.lead import LeadRepository
from concierge.repositories.ledger import LedgerRepository
from concierge.services import (
    ai_service,
    design_extraction_service,
    image_service,
    lead_service,
    verification_service,
    website_service,
)
from concierge.services.feature_gate import CapabilityRequiredError
from concierge.services.url_extraction import find_logo_url
from concierge.utils.auth import get_auth_context, require_workspace_access
from concierge.utils.exceptions import ConciergeError, ForbiddenError, NotFoundError, ValidationError
from concierge.utils.responses import capability_required, error, not_found, success, validation_error

logger = structlog.get_logger()

StepResult = tuple[dict, UsageLedger | None]


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle wizard API requests.

    Routes:
        POST /workspaces/{workspace_id}/wizard/find-leads
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/analyze
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/visualize
        PUT  /workspaces/{workspace_id}/wizard/leads/{lead_id}/design-spec
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/design-spec/sections
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/strategy
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/build
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/verify
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/fix
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/edit
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/pages
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/pitch
        POST /workspaces/{workspace_id}/wizard/leads/{lead_id}/social-image
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "").rstrip("/")
        path_params = event.get("pathParameters", {}) or {}
        workspace_id = path_params.get("workspace_id")
        lead_id = path_params.get("lead_id")

        auth = get_auth_context(event)
        if workspace_id:
            require_workspace_access(auth, workspace_id)

        body = _parse_body(event)
        ledger_repo = LedgerRepository()
        ledger = ledger_repo.get_for_workspace(workspace_id)

        try:
            response, debited = _dispatch(http_method, path, workspace_id, lead_id, body, ledger)
        except Exception as e:
            failed_ledger = getattr(e, "ledger", None)
            if failed_ledger is not None:
                ledger_repo.save(failed_ledger)
            raise

        if debited is not None:
            ledger_repo.save(debited)
            response["credits"] = {"balance": debited.balance}
        return success(response)

    except CapabilityRequiredError as e:
        return capability_required(e.feature)
    except ValidationError as e:
        return validation_error(e.errors)
    except ForbiddenError as e:
        return error(e.message, 403, error_code="FORBIDDEN")
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except ConciergeError as e:
        return error(e.message, e.status_code, error_code=e.error_code, details=e.details)
    except (ClientError, BotoCoreError) as e:
        logger.exception("AI service call failed", error=str(e))
        return error("The AI service is unavailable, please try again", 502, error_code="UPSTREAM_UNAVAILABLE")
    except NotImplementedError as e:
        logger.warning("Feature not available", error=str(e))
        return error(str(e), 501)
    except (ValueError, IndexError) as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Wizard handler error", error=str(e))
        return error("Internal server error", 500)


def _dispatch(
    http_method: str,
    path: str,
    workspace_id: str,
    lead_id: str | None,
    body: dict,
    ledger: UsageLedger,
) -> StepResult:
    if http_method == "POST" and path.endswith("/wizard/find-leads"):
        return find_leads(workspace_id, body, ledger)
    if not lead_id:
        raise ValueError("Method not allowed")

    repo = LeadRepository()
    lead = repo.get_or_raise_by_id(workspace_id, lead_id)
    action = path.rsplit("/", 1)[-1]

    if http_method == "PUT" and action == "design-spec":
        return update_design_spec(repo, lead, body)
    elif http_method == "POST" and path.endswith("/design-spec/sections"):
        return edit_sections(repo, lead, body)
    elif http_method == "POST" and action == "analyze":
        return analyze(repo, lead, body, ledger)
    elif http_method == "POST" and action == "visualize":
        return visualize(repo, lead, body, ledger)
    elif http_method == "POST" and action == "strategy":
        return strategize(repo, lead, body, ledger)
    elif http_method == "POST" and action == "build":
        return build(repo, lead, body, ledger)
    elif http_method == "POST" and action == "verify":
        return verify(repo, lead, body)
    elif http_method == "POST" and action == "fix":
        return fix(repo, lead, body, ledger)
    elif http_method == "POST" and action == "edit":
        return edit(repo, lead, body, ledger)
    elif http_method == "POST" and action == "pages":
        return add_page(repo, lead, body, ledger)
    elif http_method == "POST" and action == "pitch":
        return pitch(repo, lead, body, ledger)
    elif http_method == "POST" and action == "social-image":
        return social_image(repo, lead, body, ledger)
    raise ValueError("Method not allowed")


def _parse_body(event: dict) -> dict:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise ValidationError([{"field": "body", "message": "Invalid JSON body"}])
    if not isinstance(body, dict):
        raise ValidationError([{"field": "body", "message": "Expected a JSON object"}])
    return body


def _require(body: dict, field: str) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError([{"field": field, "message": "Field required"}])
    return value.strip()


def _capability(body: dict) -> tuple[CapabilityContext, bool]:
    """Capability context and skip flag sent by the client after key selection."""
    return (
        CapabilityContext(has_capability=bool(body.get("capability_selected"))),
        bool(body.get("skip_check")),
    )


def _require_spec(lead: Lead) -> DesignSpecification:
    if lead.design_spec is None:
        raise ValueError("Lead has no design spec yet; run visualize first")
    return lead.design_spec


def _require_code(lead: Lead) -> str:
    if not lead.website_code:
        raise ValueError("Lead has no website yet; run build first")
    return lead.website_code


def _concept_image(lead: Lead) -> str | None:
    if not lead.concept_image_key:
        return None
    return image_service.load_image(lead.concept_image_key).data_url


def _verify(lead: Lead, html: str) -> VerificationReport:
    """Verify a build; a failed verifier call is reported, not raised."""
    spec = lead.design_spec
    if spec is None:
        return VerificationReport.unavailable("No design spec to verify against")
    try:
        return verification_service.verify_website_against_spec(html, spec, _concept_image(lead))
    except Exception as e:
        logger.warning("Verification call failed", lead_id=lead.id, error=str(e))
        return VerificationReport.unavailable(f"Verification failed: {e}")


def _verification_payload(report: VerificationReport) -> dict:
    data = report.model_dump(mode="json", by_alias=True)
    data["needs_review"] = not report.passed
    if report.result is not None:
        data["grouped"] = {
            severity: [d.to_wire() for d in items]
            for severity, items in report.result.grouped_by_severity().items()
        }
    return data


def find_leads(workspace_id: str, body: dict, ledger: UsageLedger) -> StepResult:
    """Find lead candidates and look up their own websites."""
    query = _require(body, "query")
    location = _require(body, "location")

    leads, grounding, debited = lead_service.find_leads(query, location, ledger)

    if body.get("lookup_websites", True):
        websites = lead_service.lookup_lead_websites(leads)
        leads = [
            lead.model_copy(update={"website_url": website}) if website else lead
            for lead, website in zip(leads, websites)
        ]

    logger.info("Wizard leads found", workspace_id=workspace_id, count=len(leads))
    return {
        "leads": [lead.model_dump(mode="json") for lead in leads],
        "grounding": grounding,
    }, debited


def analyze(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Generate brand guidelines for a lead."""
    guidelines, debited = lead_service.generate_brand_analysis(
        lead.business_name,
        lead.details,
        ledger,
        website_url=lead.website_url,
    )
    if lead.brand_guidelines and lead.brand_guidelines.design_spec:
        guidelines.design_spec = lead.brand_guidelines.design_spec

    lead.brand_guidelines = guidelines
    lead.status = LeadStatus.ANALYZING
    repo.update_lead(lead)

    return {"brand_guidelines": guidelines.to_wire()}, debited


def visualize(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Generate the concept image and derive the design spec from it."""
    brand = lead.brand_guidelines or BrandGuidelines()
    capability, skip_check = _capability(body)
    prompt = body.get("prompt") or (
        f"{lead.business_name}, {lead.details}. "
        f"Brand tone: {brand.tone or 'Professional'}. Brand colors: {', '.join(brand.colors) or 'any'}."
    )

    image, debited = image_service.generate_website_concept_image(
        prompt,
        ledger=ledger,
        capability=capability,
        aspect_ratio=body.get("aspect_ratio", "16:9"),
        skip_check=skip_check,
    )

    # The image is paid for; keep it even if later steps go wrong
    try:
        key = image_service.store_image(lead.workspace_id, image)
        spec = design_extraction_service.extract_design_spec(image.data_url, lead.business_name, brand)
        if lead.website_url:
            logo_url = find_logo_url(ai_service.fetch_url(lead.website_url))
            if logo_url:
                spec.attach_asset("logo", logo_url, source="website")
    except Exception as e:
        e.ledger = debited
        raise

    brand.design_spec = spec
    lead.brand_guidelines = brand
    lead.concept_image_key = key
    lead.record("IMAGE", key, kind="website_concept")
    repo.update_lead(lead)

    return {
        "concept_image": image.data_url,
        "concept_image_key": key,
        "design_spec": spec.to_wire(),
        "missing_assets": spec.assets.missing_slots(),
    }, debited


def update_design_spec(repo: LeadRepository, lead: Lead, body: dict) -> StepResult:
    """Replace the lead's design spec with the operator's reviewed version."""
    try:
        spec = DesignSpecification.from_wire(body)
    except PydanticValidationError as e:
        raise ValidationError([
            {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ])

    brand = lead.brand_guidelines or BrandGuidelines()
    brand.design_spec = spec
    lead.brand_guidelines = brand
    repo.update_lead(lead)

    return {"design_spec": spec.to_wire()}, None


def edit_sections(repo: LeadRepository, lead: Lead, body: dict) -> StepResult:
    """Apply one review-screen edit to the design spec.

    Body actions: ``move`` (index, direction), ``add`` (type), ``remove``
    (index) and ``attach_asset`` (kind, url).
    """
    spec = _require_spec(lead)
    action = _require(body, "action")

    if action == "move":
        spec.move_section(int(body.get("index", -1)), body.get("direction", ""))
    elif action == "add":
        spec.add_section(_require(body, "type"), body.get("required_content"))
    elif action == "remove":
        spec.remove_section(int(body.get("index", -1)))
    elif action == "attach_asset":
        spec.attach_asset(_require(body, "kind"), _require(body, "url"), body.get("source", "user"))
    else:
        raise ValueError(f"Unknown section action '{action}'")

    lead.brand_guidelines.design_spec = spec
    repo.update_lead(lead)

    return {"design_spec": spec.to_wire()}, None


def strategize(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Plan a marketing campaign for the lead."""
    goal = _require(body, "goal")
    platforms = body.get("platforms") or ["Instagram", "Facebook", "Google Maps"]

    strategy, debited = lead_service.generate_campaign_strategy(
        lead.business_name, goal, platforms, lead.brand_guidelines, ledger
    )
    lead.record("STRATEGY", strategy.model_dump(mode="json", by_alias=True), description=goal)
    repo.update_lead(lead)

    return {"strategy": strategy.model_dump(mode="json", by_alias=True)}, debited


def build(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Build the website from the design spec and verify it."""
    brand = lead.brand_guidelines
    prompt = body.get("prompt") or (
        f"A single page website for {lead.business_name}. {lead.details}. "
        f"Style: {brand.tone if brand and brand.tone else 'Professional'}. "
        f"Primary Colors: {', '.join(brand.colors) if brand else ''}. "
        "Include Hero, Services, Reviews, Contact."
    )
    spec = lead.design_spec

    html, debited = website_service.generate_website(prompt, spec, ledger)
    report = _verify(lead, html)

    lead.website_code = html
    lead.verification = report
    lead.record("WEBSITE_CONCEPT", prompt, verification=report.status)
    repo.update_lead(lead)

    response = {"website_code": html, "verification": _verification_payload(report)}
    if spec is not None:
        passed, issues = verification_service.quick_verify(html, spec)
        response["quick_check"] = {"passed": passed, "issues": issues}
    return response, debited


def verify(repo: LeadRepository, lead: Lead, body: dict) -> StepResult:
    """Re-run verification of the current build."""
    html = _require_code(lead)
    spec = _require_spec(lead)

    if body.get("method") == "code":
        report = VerificationReport.from_result(verification_service.analyze_code(html, spec))
    else:
        report = verification_service.verify_website_against_spec(html, spec, _concept_image(lead))

    lead.verification = report
    repo.update_lead(lead)

    return {"verification": _verification_payload(report)}, None


def fix(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Fix the discrepancies found by verification, then verify again."""
    html = _require_code(lead)
    spec = _require_spec(lead)

    if body.get("discrepancies"):
        discrepancies = [Discrepancy.from_wire(d) for d in body["discrepancies"] if isinstance(d, dict)]
    elif lead.verification and lead.verification.result:
        discrepancies = lead.verification.result.discrepancies
    else:
        discrepancies = []

    fixed, debited = website_service.fix_website_issues(html, discrepancies, spec, ledger)
    report = _verify(lead, fixed)

    lead.website_code = fixed
    lead.verification = report
    lead.record("WEBSITE_EDIT", f"Fixed {len(discrepancies)} issues", verification=report.status)
    repo.update_lead(lead)

    return {"website_code": fixed, "verification": _verification_payload(report)}, debited


def edit(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Apply a chat edit from the AI website editor."""
    html = _require_code(lead)
    user_prompt = _require(body, "prompt")

    updated, debited = website_service.edit_website_with_ai(
        html, user_prompt, body.get("selected_element"), ledger
    )
    try:
        summary = website_service.summarize_website_changes(html, updated, user_prompt)
    except Exception as e:
        logger.warning("Change summary failed", lead_id=lead.id, error=str(e))
        summary = "Changes applied successfully."

    lead.website_code = updated
    lead.record("WEBSITE_EDIT", summary, prompt=user_prompt)
    repo.update_lead(lead)

    return {"website_code": updated, "summary": summary}, debited


def add_page(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Add a hash-routed page to the lead's website."""
    html = _require_code(lead)
    page_type = _require(body, "page_type")
    page_label = body.get("page_label") or page_type.replace("-", " ").title()

    updated, debited = website_service.add_page_to_website(
        html, page_type, page_label, f"{lead.business_name}: {lead.details}", ledger
    )
    lead.website_code = updated
    lead.record("WEBSITE_EDIT", f"Added {page_label} page", page_type=page_type)
    repo.update_lead(lead)

    return {"website_code": updated}, debited


def pitch(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Draft the pitch email for the lead."""
    tone = lead.brand_guidelines.tone if lead.brand_guidelines else ""
    draft, debited = lead_service.generate_pitch_email(
        lead.business_name,
        body.get("website_url") or lead.website_url,
        tone,
        ledger,
        has_concept_image=bool(lead.concept_image_key),
    )
    lead.email_draft = draft
    lead.record("EMAIL", draft.to_wire())
    repo.update_lead(lead)

    return {"email_draft": draft.to_wire()}, debited


def social_image(repo: LeadRepository, lead: Lead, body: dict, ledger: UsageLedger) -> StepResult:
    """Generate a social media image for the lead."""
    topic = _require(body, "topic")
    capability, skip_check = _capability(body)

    image, debited = image_service.generate_social_media_image(
        lead.business_name,
        topic,
        ledger=ledger,
        capability=capability,
        aspect_ratio=body.get("aspect_ratio", "1:1"),
        skip_check=skip_check,
    )
    try:
        key = image_service.store_image(lead.workspace_id, image, folder="social")
    except Exception as e:
        e.ledger = debited
        raise

    lead.record("IMAGE", key, kind="social", topic=topic)
    repo.update_lead(lead)

    return {"image": image.data_url, "key": key}, debited
