"""marketplace/__init__.py"""
from .session import Session, SessionStore, UserType
from .notifications import Notifier, EmailType, truncate_preview
from .interviews import (
    AvailabilityWindow, ScheduledInterview, InterviewScheduler, BookingError,
    compute_slots, is_date_available, week_start, week_dates, prev_week, next_week,
)
from .messaging import Message, Messenger, ConversationWatcher
from .jobs import (
    Job, Application, JobBoard, JobError, JobStatus, BudgetType, format_budget,
)

__all__ = [
    "Session", "SessionStore", "UserType",
    "Notifier", "EmailType", "truncate_preview",
    "AvailabilityWindow", "ScheduledInterview", "InterviewScheduler", "BookingError",
    "compute_slots", "is_date_available", "week_start", "week_dates",
    "prev_week", "next_week",
    "Message", "Messenger", "ConversationWatcher",
    "Job", "Application", "JobBoard", "JobError", "JobStatus", "BudgetType",
    "format_budget",
]
