"""
assessment/gateway.py — Remote calls behind the assessment flow.

Raw rows are normalized here (joined relations, JSONB options) so the runner
only sees models. Malformed payloads surface as BackendError like any other
remote failure.
"""
import logging
from typing import Dict, List, Optional, TYPE_CHECKING

from pydantic import ValidationError

from backend.client import BackendError, eq
from backend import types
from backend.types import parse_options
from .models import AssessmentConfig, Eligibility, Question, AnswerRecord, Results

if TYPE_CHECKING:
    from backend.client import BackendClient

logger = logging.getLogger(__name__)


def one(value):
    try:
        return types.one(value)
    except TypeError as e:
        raise BackendError(f"Unexpected payload shape: {e}") from e


def many(value):
    try:
        return types.many(value)
    except TypeError as e:
        raise BackendError(f"Unexpected payload shape: {e}") from e


class AssessmentGateway:
    def __init__(self, client: "BackendClient"):
        self.client = client

    async def check_eligibility(self, va_id: str, skill_id: str) -> Eligibility:
        rows = await self.client.rpc("can_take_assessment", {
            "p_va_id": va_id,
            "p_skill_id": skill_id,
        })
        row = one(rows)
        if row is None:
            return Eligibility(can_take=False)
        return Eligibility(can_take=bool(row.get("can_take")), reason=row.get("reason"))

    def _config_from_row(self, row: Dict) -> AssessmentConfig:
        skill = one(row.get("skill")) or {}
        extra = {}
        # a missing column keeps the model default cooldown
        if row.get("retry_wait_hours") is not None:
            extra["retry_wait_hours"] = row["retry_wait_hours"]
        return AssessmentConfig(
            skill_id=str(row["skill_id"]),
            skill_name=skill.get("name") or "",
            skill_category=skill.get("category") or "",
            questions_per_test=row["questions_per_test"],
            time_limit_minutes=row["time_limit_minutes"],
            passing_score=row["passing_score"],
            **extra,
        )

    async def fetch_config(self, skill_id: str) -> Optional[AssessmentConfig]:
        row = one(await self.client.select(
            "skill_assessment_config", "*, skill:skills(name)",
            {"skill_id": eq(skill_id)}, limit=1,
        ))
        if row is None:
            return None
        try:
            return self._config_from_row(row)
        except (KeyError, ValidationError) as e:
            raise BackendError(f"Malformed assessment config for {skill_id}: {e}") from e

    async def fetch_questions(self, skill_id: str, va_id: str) -> List[Question]:
        rows = many(await self.client.rpc("get_assessment_questions", {
            "p_skill_id": skill_id,
            "p_va_id": va_id,
        }))
        questions = []
        for row in rows:
            try:
                questions.append(Question(
                    question_id=str(row["question_id"]),
                    prompt=row["question"],
                    options=parse_options(row["options"]),
                    difficulty=row.get("difficulty") or "",
                    category=row.get("category") or "",
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise BackendError(f"Malformed question payload: {e}") from e
        return questions

    async def create_attempt(self, va_id: str, skill_id: str, question_ids: List[str]) -> str:
        row = one(await self.client.insert("skill_attempts", {
            "va_id": va_id,
            "skill_id": skill_id,
            "questions_data": [{"question_id": qid} for qid in question_ids],
        }, returning="id"))
        if row is None or row.get("id") is None:
            raise BackendError("Attempt insert returned no id")
        return str(row["id"])

    async def submit_answers(self, attempt_id: str, answers: List[AnswerRecord]) -> Results:
        row = one(await self.client.rpc("submit_assessment", {
            "p_attempt_id": attempt_id,
            "p_answers": [a.model_dump() for a in answers],
        }))
        if row is None:
            raise BackendError("Scoring returned no result")
        try:
            return Results.model_validate(row)
        except ValidationError as e:
            raise BackendError(f"Malformed scoring result: {e}") from e

    # ------------------------------------------------------------------ #
    # Catalog reads
    # ------------------------------------------------------------------ #
    async def list_active_configs(self) -> List[AssessmentConfig]:
        rows = many(await self.client.select(
            "skill_assessment_config", "*, skill:skills(name, category)",
            {"is_active": eq("true")},
        ))
        configs = []
        for row in rows:
            try:
                configs.append(self._config_from_row(row))
            except (KeyError, ValidationError, BackendError) as e:
                logger.warning(f"⚠️ Skipping config {row.get('skill_id')}: {e}")
        return configs

    async def question_counts(self) -> Dict[str, int]:
        rows = many(await self.client.select(
            "skill_questions", "skill_id", {"is_active": eq("true")}
        ))
        counts: Dict[str, int] = {}
        for row in rows:
            skill_id = str(row["skill_id"])
            counts[skill_id] = counts.get(skill_id, 0) + 1
        return counts

    async def va_skills(self, va_id: str) -> List[Dict]:
        return many(await self.client.select(
            "va_skills", "skill_id, verified_at, assessment_score",
            {"va_id": eq(va_id)},
        ))

    async def attempts(self, va_id: str) -> List[Dict]:
        return many(await self.client.select(
            "skill_attempts", "skill_id, completed_at, passed",
            {"va_id": eq(va_id)}, order="completed_at.desc",
        ))
