"""
marketplace/jobs.py — Job posts by clients and applications by VAs.

A VA applies once per job and only while the job is open. The client who
posted the job gets a best-effort email for each application.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set, TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from backend.client import BackendError, eq, gte
from backend.types import many, one

if TYPE_CHECKING:
    from backend.client import BackendClient
    from .notifications import Notifier
    from .session import Session

logger = logging.getLogger(__name__)

MSG_APPLY_FAILED    = "Failed to submit application. Please try again."
MSG_JOB_NOT_FOUND   = "Job not found"
MSG_ALREADY_APPLIED = "You have already applied to this job"

JOB_COLUMNS = (
    "*, client:clients!jobs_client_id_fkey(id, user_id, company_name, "
    "profile:profiles!clients_user_id_fkey(full_name)), "
    "job_skills(skill:skills(id, name))"
)


class BudgetType(str, Enum):
    HOURLY = "hourly"
    FIXED  = "fixed"


class JobStatus(str, Enum):
    OPEN   = "open"
    PAUSED = "paused"
    CLOSED = "closed"
    FILLED = "filled"


class JobError(Exception):
    pass


class Job(BaseModel):
    id: str
    title: str
    description: str = ""
    budget_type: BudgetType = BudgetType.FIXED
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    job_type: str = ""
    experience_level: str = ""
    status: JobStatus = JobStatus.OPEN
    created_at: Optional[datetime] = None
    client_id: Optional[str] = None
    client_user_id: Optional[str] = None
    client_name: str = ""
    skills: List[str] = []

    def matches(self, query: str) -> bool:
        """Case-insensitive match on title, description or a skill name."""
        q = query.lower()
        return (
            q in self.title.lower()
            or q in self.description.lower()
            or any(q in s.lower() for s in self.skills)
        )


class Application(BaseModel):
    id: str
    job_id: str
    status: str = "pending"
    cover_letter: Optional[str] = None
    proposed_rate: Optional[float] = None
    created_at: Optional[datetime] = None
    job: Optional[Job] = None


def format_budget(job: Job) -> str:
    if job.budget_min and job.budget_max:
        amount = f"${job.budget_min:,.0f}-{job.budget_max:,.0f}"
    elif job.budget_min:
        amount = f"${job.budget_min:,.0f}+"
    else:
        return "Budget not specified"
    return f"{amount}/hr" if job.budget_type == BudgetType.HOURLY else f"{amount} fixed"


def job_from_row(row: Dict) -> Job:
    client = one(row.get("client")) or {}
    profile = one(client.get("profile")) or {}
    skills = []
    for js in many(row.get("job_skills")):
        skill = one(js.get("skill"))
        if skill and skill.get("name"):
            skills.append(skill["name"])
    return Job(
        id=str(row["id"]),
        title=row["title"],
        description=row.get("description") or "",
        budget_type=row.get("budget_type") or BudgetType.FIXED,
        budget_min=row.get("budget_min"),
        budget_max=row.get("budget_max"),
        job_type=row.get("job_type") or "",
        experience_level=row.get("experience_level") or "",
        status=row.get("status") or JobStatus.OPEN,
        created_at=row.get("created_at"),
        client_id=str(client["id"]) if client.get("id") else row.get("client_id"),
        client_user_id=str(client["user_id"]) if client.get("user_id") else None,
        client_name=client.get("company_name") or profile.get("full_name") or "",
        skills=skills,
    )


class JobBoard:
    def __init__(self, client: "BackendClient", notifier: Optional["Notifier"] = None):
        self.client = client
        self.notifier = notifier

    def _jobs(self, rows) -> List[Job]:
        jobs = []
        for row in many(rows):
            try:
                jobs.append(job_from_row(row))
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"⚠️ Skipping job {row.get('id')}: {e}")
        return jobs

    # ------------------------------------------------------------------ #
    # Browsing
    # ------------------------------------------------------------------ #
    async def list_open_jobs(
        self,
        budget_type: Optional[BudgetType] = None,
        min_budget: Optional[float] = None,
        search: str = "",
    ) -> List[Job]:
        """Open jobs, newest first."""
        filters = {"status": eq(JobStatus.OPEN.value)}
        if budget_type:
            filters["budget_type"] = eq(BudgetType(budget_type).value)
        if min_budget:
            filters["budget_min"] = gte(min_budget)
        jobs = self._jobs(await self.client.select(
            "jobs", JOB_COLUMNS, filters, order="created_at.desc"
        ))
        if search:
            jobs = [j for j in jobs if j.matches(search)]
        return jobs

    async def get_job(self, job_id: str) -> Optional[Job]:
        row = one(await self.client.select("jobs", JOB_COLUMNS, {"id": eq(job_id)}, limit=1))
        if row is None:
            return None
        try:
            return job_from_row(row)
        except (KeyError, TypeError, ValidationError) as e:
            raise BackendError(f"Malformed job {job_id}: {e}") from e

    async def applied_job_ids(self, session: "Session") -> Set[str]:
        if not session.is_va:
            return set()
        rows = many(await self.client.select(
            "job_applications", "job_id", {"va_id": eq(session.va_id)}
        ))
        return {str(r["job_id"]) for r in rows}

    # ------------------------------------------------------------------ #
    # Applying
    # ------------------------------------------------------------------ #
    async def apply(
        self,
        session: "Session",
        job_id: str,
        cover_letter: str = "",
        proposed_rate: Optional[float] = None,
    ) -> Dict:
        if not session.is_va:
            raise JobError("Only virtual assistants can apply to jobs")
        try:
            job = await self.get_job(job_id)
            if job is None:
                raise JobError(MSG_JOB_NOT_FOUND)
            if job.status != JobStatus.OPEN:
                state = "filled" if job.status == JobStatus.FILLED else "closed"
                raise JobError(f"This position has been {state}.")
            if job_id in await self.applied_job_ids(session):
                raise JobError(MSG_ALREADY_APPLIED)
            row = one(await self.client.insert("job_applications", {
                "job_id": job_id,
                "va_id": session.va_id,
                "cover_letter": cover_letter.strip() or None,
                "proposed_rate": proposed_rate,
                "status": "pending",
            }))
        except BackendError as e:
            logger.error(f"❌ Application to {job_id} failed: {e}")
            raise JobError(MSG_APPLY_FAILED) from e

        logger.info(f"📨 {session.va_id} applied to job {job_id}")
        if self.notifier is not None and job.client_user_id:
            self.notifier.notify_job_application(
                session, job.client_user_id, job.client_name or "there",
                job.title, job.id, proposed_rate,
            )
        return row or {}

    async def my_applications(self, session: "Session") -> List[Application]:
        """The VA's applications, newest first, each with its job."""
        if not session.is_va:
            return []
        rows = many(await self.client.select(
            "job_applications",
            "*, job:jobs(id, title, description, budget_type, budget_min, budget_max, status, "
            "client:clients!jobs_client_id_fkey(id, company_name, user_id, "
            "profile:profiles!clients_user_id_fkey(full_name)))",
            {"va_id": eq(session.va_id)}, order="created_at.desc",
        ))
        applications = []
        for row in rows:
            job = one(row.get("job"))
            try:
                applications.append(Application(
                    id=str(row["id"]),
                    job_id=str(row["job_id"]),
                    status=row.get("status") or "pending",
                    cover_letter=row.get("cover_letter"),
                    proposed_rate=row.get("proposed_rate"),
                    created_at=row.get("created_at"),
                    job=job_from_row(job) if job else None,
                ))
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"⚠️ Skipping application {row.get('id')}: {e}")
        return applications

    # ------------------------------------------------------------------ #
    # Posting (clients)
    # ------------------------------------------------------------------ #
    async def create_job(
        self,
        session: "Session",
        title: str,
        description: str,
        budget_type: BudgetType = BudgetType.FIXED,
        budget_min: Optional[float] = None,
        budget_max: Optional[float] = None,
        job_type: str = "",
        experience_level: str = "",
        skill_ids: Optional[List[str]] = None,
    ) -> Job:
        if not session.is_client:
            raise JobError("Only clients can post jobs")
        if not title.strip():
            raise ValueError("Please enter a job title")
        if not description.strip():
            raise ValueError("Please enter a job description")
        row = one(await self.client.insert("jobs", {
            "client_id": session.client_id,
            "title": title.strip(),
            "description": description.strip(),
            "budget_type": BudgetType(budget_type).value,
            "budget_min": budget_min,
            "budget_max": budget_max,
            "job_type": job_type,
            "experience_level": experience_level,
            "status": JobStatus.OPEN.value,
        }))
        if row is None:
            raise BackendError("Job insert returned no row")
        job = job_from_row(row)
        for skill_id in skill_ids or []:
            await self.client.insert(
                "job_skills", {"job_id": job.id, "skill_id": skill_id}, returning="job_id"
            )
        logger.info(f"📝 Job {job.id} posted by {session.client_id}")
        return job

    async def my_jobs(self, session: "Session") -> List[tuple]:
        """(job, application count) for the client's posts, newest first."""
        if not session.is_client:
            return []
        rows = many(await self.client.select(
            "jobs", "*, job_applications(count)",
            {"client_id": eq(session.client_id)}, order="created_at.desc",
        ))
        result = []
        for row in rows:
            try:
                job = job_from_row(row)
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"⚠️ Skipping job {row.get('id')}: {e}")
                continue
            count = one(row.get("job_applications")) or {}
            result.append((job, count.get("count") or 0))
        return result

    async def set_status(self, job_id: str, status: JobStatus):
        await self.client.update(
            "jobs", {"status": JobStatus(status).value}, {"id": eq(job_id)}
        )
