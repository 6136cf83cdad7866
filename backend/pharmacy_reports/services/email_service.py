"""
Weekly summary email: payload from the week summary, one text-generation call, mailto handoff.

The generation call is a single bounded attempt. Any failure yields a fixed
fallback text in place of the draft; the user regenerates manually.
"""
import json
from typing import Optional
from urllib.parse import quote

import httpx

from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.schemas.analytics import EmailDraft, WeekSummary
from pharmacy_reports.services.weeks import fmt_gbp

logger = get_logger(__name__)

FALLBACK_EMPTY = "Could not generate email."
FALLBACK_ERROR = "Error generating email. Please try again."
TOP_SERVICES = 5
ANTHROPIC_VERSION = "2023-06-01"

INSTRUCTION = (
    "You are a pharmacy group operations analyst. Write a professional, concise weekly "
    "performance summary email to the CEO of a UK independent pharmacy chain.\n"
    "Use this data: {data}\n"
    "The email should: open with a warm professional greeting, lead with headline numbers, "
    "call out top-performing site, note any sites that haven't submitted or submitted late, "
    "highlight top 2-3 services, end positively. Use British English. Under 300 words. "
    'Plain text, no markdown. Sign off as "Operations Team".'
)


class GenerationError(Exception):
    pass


def build_payload(summary: WeekSummary) -> dict:
    change = summary.revenue_change
    return {
        "week": summary.week_label,
        "totalRevenue": fmt_gbp(summary.total_revenue),
        "wowChange": (
            f"{change.arrow} {change.magnitude_percent}% vs prior week" if change else "No prior week data"
        ),
        "submitted": f"{summary.submitted_count}/{summary.pharmacy_count}",
        "submissionRate": f"{summary.submission_rate}%",
        "avgPerSite": fmt_gbp(summary.avg_per_site),
        "topSite": (
            {"name": summary.top_site, "revenue": fmt_gbp(summary.top_site_revenue)} if summary.top_site else None
        ),
        "totalSessions": summary.total_sessions,
        "compliance": {
            "onTime": summary.compliance.on_time,
            "late": summary.compliance.late,
            "overdue": summary.compliance.overdue,
            "pending": summary.compliance.pending,
        },
        "pharmacies": [
            {
                "name": p.pharmacy,
                "revenue": fmt_gbp(p.revenue) if p.submitted else "Not submitted",
                "submitted": p.submitted,
                "status": p.status_label,
            }
            for p in summary.pharmacies
        ],
        "topServices": [
            {"name": s.label, "revenue": fmt_gbp(s.revenue), "count": s.count}
            for s in summary.services[:TOP_SERVICES]
        ],
    }


def build_prompt(payload: dict) -> str:
    return INSTRUCTION.format(data=json.dumps(payload, indent=2, ensure_ascii=False))


def email_subject(summary: WeekSummary) -> str:
    return f"Pharmacy Group — Weekly Report w/c {summary.week_label}"


def mailto_uri(subject: str, body: str, to: str = "") -> str:
    return f"mailto:{quote(to)}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"


def _extract_text(data) -> str:
    """Concatenate text blocks of a Messages API response; '' when the shape is unexpected."""
    if not isinstance(data, dict):
        return ""
    blocks = data.get("content")
    if not isinstance(blocks, list):
        return ""
    parts = []
    for b in blocks:
        if isinstance(b, dict) and isinstance(b.get("text"), str):
            parts.append(b["text"])
    return "".join(parts).strip()


async def generate_text(prompt: str, settings, client: Optional[httpx.AsyncClient] = None) -> str:
    """One call to the text-generation service. Raises GenerationError on transport/HTTP failure."""
    if not settings.anthropic_api_key:
        raise GenerationError("ANTHROPIC_API_KEY is not set")
    headers = {
        "x-api-key": settings.anthropic_api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "content-type": "application/json",
    }
    body = {
        "model": settings.anthropic_model,
        "max_tokens": settings.anthropic_max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    own_client = client is None
    client = client or httpx.AsyncClient()
    try:
        r = await client.post(
            settings.anthropic_url,
            json=body,
            headers=headers,
            timeout=settings.generation_timeout_seconds,
        )
    except httpx.HTTPError as e:
        raise GenerationError(f"{type(e).__name__}: {e}") from e
    finally:
        if own_client:
            await client.aclose()
    if r.status_code != 200:
        raise GenerationError(f"HTTP {r.status_code}: {r.text[:200]}")
    try:
        data = r.json()
    except ValueError:
        return ""
    return _extract_text(data)


async def draft_email(
    summary: WeekSummary,
    settings,
    client: Optional[httpx.AsyncClient] = None,
) -> EmailDraft:
    prompt = build_prompt(build_payload(summary))
    generated = False
    try:
        text = await generate_text(prompt, settings, client=client)
        if text:
            body = text
            generated = True
        else:
            logger.warning("Empty or malformed generation response for week %s", summary.week)
            body = FALLBACK_EMPTY
    except GenerationError as e:
        logger.warning("Email generation failed for week %s: %s", summary.week, e)
        body = FALLBACK_ERROR
    subject = email_subject(summary)
    return EmailDraft(
        week=summary.week,
        subject=subject,
        body=body,
        mailto=mailto_uri(subject, body),
        generated=generated,
    )
