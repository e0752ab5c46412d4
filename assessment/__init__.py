"""assessment/__init__.py"""
from .enum import Phase
from .models import (
    AssessmentConfig, Eligibility, Question, AnswerRecord, Results,
    AttemptSession, UNANSWERED,
)
from .timers import CountdownTimer, format_time
from .gateway import AssessmentGateway
from .runner import AssessmentRunner
from .catalog import AssessmentListing, SkillStatus, build_listing, list_assessments
from .history import ResultHistory

__all__ = [
    "Phase", "AssessmentConfig", "Eligibility", "Question", "AnswerRecord",
    "Results", "AttemptSession", "UNANSWERED",
    "CountdownTimer", "format_time",
    "AssessmentGateway", "AssessmentRunner",
    "AssessmentListing", "SkillStatus", "build_listing", "list_assessments",
    "ResultHistory",
]
