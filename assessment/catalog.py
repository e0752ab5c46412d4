"""
assessment/catalog.py — Assessments a VA can see, with per-skill status.

A verified skill cannot be retaken; a failed attempt locks the skill until
retry_wait_hours have passed since it completed.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, TYPE_CHECKING

from pydantic import BaseModel

from .models import AssessmentConfig

if TYPE_CHECKING:
    from marketplace.session import Session
    from .gateway import AssessmentGateway


class SkillStatus(BaseModel):
    verified: bool = False
    score: Optional[int] = None
    can_take: bool = True
    next_available: Optional[datetime] = None
    last_attempt: Optional[datetime] = None


class AssessmentListing(BaseModel):
    config: AssessmentConfig
    question_count: int = 0
    status: SkillStatus


def _parse_ts(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def build_listing(
    configs: List[AssessmentConfig],
    question_counts: Dict[str, int],
    va_skills: List[Dict],
    attempts: List[Dict],
    now: datetime,
) -> List[AssessmentListing]:
    """Pure part of the catalog; `attempts` must be newest first."""
    verified_map = {
        str(vs["skill_id"]): (bool(vs.get("verified_at")), vs.get("assessment_score"))
        for vs in va_skills
    }
    last_attempts: Dict[str, Dict] = {}
    for attempt in attempts:
        if attempt.get("completed_at") is None:
            continue
        last_attempts.setdefault(str(attempt["skill_id"]), attempt)

    listing = []
    for cfg in configs:
        verified, score = verified_map.get(cfg.skill_id, (False, None))
        last = last_attempts.get(cfg.skill_id)
        status = SkillStatus(
            verified=verified,
            score=score,
            last_attempt=_parse_ts(last["completed_at"]) if last else None,
        )
        if verified:
            status.can_take = False
        elif last is not None and not last.get("passed"):
            next_time = status.last_attempt + timedelta(hours=cfg.retry_wait_hours)
            if next_time > now:
                status.can_take = False
                status.next_available = next_time
        listing.append(AssessmentListing(
            config=cfg,
            question_count=question_counts.get(cfg.skill_id, 0),
            status=status,
        ))

    listing.sort(key=lambda item: (item.status.verified, item.config.skill_name.lower()))
    return listing


async def list_assessments(
    gateway: "AssessmentGateway",
    session: "Session",
    now: Optional[datetime] = None,
) -> List[AssessmentListing]:
    if not session.is_va:
        return []
    configs = await gateway.list_active_configs()
    if not configs:
        return []
    return build_listing(
        configs,
        await gateway.question_counts(),
        await gateway.va_skills(session.va_id),
        await gateway.attempts(session.va_id),
        now or datetime.now(timezone.utc),
    )
