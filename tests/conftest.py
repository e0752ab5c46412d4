import asyncio
import pytest

from backend.client import BackendError
from assessment.models import AssessmentConfig, Eligibility, Question, Results
from assessment.runner import AssessmentRunner
from marketplace.session import Session, UserType


def make_questions(n=3, options=4):
    return [
        Question(
            question_id=f"q{i}",
            prompt=f"Question {i}?",
            options=[f"Option {i}.{j}" for j in range(options)],
            difficulty="easy",
            category="general",
        )
        for i in range(1, n + 1)
    ]


class FakeGateway:
    """In-memory stand-in for AssessmentGateway; scores like the backend does."""

    def __init__(self, config=None, questions=None, correct=None):
        self.config = config or AssessmentConfig(
            skill_id="skill-1", skill_name="Bookkeeping",
            questions_per_test=3, time_limit_minutes=1, passing_score=70,
        )
        self.questions = make_questions() if questions is None else questions
        self.correct = correct if correct is not None else {"q1": 0, "q2": 1, "q3": 2}
        self.eligibility = Eligibility(can_take=True)
        self.failing = set()
        self.created_attempts = []
        self.submit_calls = []
        self.on_submit = None

    def _maybe_fail(self, name):
        if name in self.failing:
            raise BackendError(f"{name} failed")

    async def check_eligibility(self, va_id, skill_id):
        self._maybe_fail("check_eligibility")
        return self.eligibility

    async def fetch_config(self, skill_id):
        self._maybe_fail("fetch_config")
        return self.config

    async def fetch_questions(self, skill_id, va_id):
        self._maybe_fail("fetch_questions")
        return list(self.questions)

    async def create_attempt(self, va_id, skill_id, question_ids):
        self._maybe_fail("create_attempt")
        attempt_id = f"attempt-{len(self.created_attempts) + 1}"
        self.created_attempts.append((attempt_id, list(question_ids)))
        return attempt_id

    async def submit_answers(self, attempt_id, answers):
        self.submit_calls.append((attempt_id, answers))
        if self.on_submit:
            self.on_submit()
        await asyncio.sleep(0)
        self._maybe_fail("submit_answers")
        correct = sum(1 for a in answers if self.correct.get(a.question_id) == a.selected_answer)
        total = len(answers)
        score = round(correct * 100 / total)
        return Results(
            score=score,
            passed=score >= self.config.passing_score,
            correct_count=correct,
            total_questions=total,
        )


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def notify_assessment_passed(self, sender, skill_name, score):
        self.sent.append(("assessment_passed", sender.user_id, skill_name, score))

    def notify_interview_scheduled(self, sender, recipient_user_id, recipient_name, date, time, duration):
        self.sent.append(("interview_scheduled", recipient_user_id, date, time, duration))

    def notify_new_message(self, sender, recipient_user_id, recipient_name, preview, conversation_id):
        self.sent.append(("new_message", recipient_user_id, preview, conversation_id))

    def notify_job_application(self, sender, client_user_id, client_name, job_title, job_id, proposed_rate):
        self.sent.append(("job_application", client_user_id, client_name, job_title, job_id, proposed_rate))


@pytest.fixture
def va_session():
    return Session(
        user_id="user-va", access_token="token-va", email="va@example.com",
        full_name="Vera Assistant", user_type=UserType.VA, va_id="va-1",
    )


@pytest.fixture
def client_session():
    return Session(
        user_id="user-client", access_token="token-client", email="client@example.com",
        full_name="Carl Client", user_type=UserType.CLIENT, client_id="client-1",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def make_runner(va_session):
    """Runner factory; the background tick is parked so tests drive the timer by hand."""
    runners = []

    def factory(gateway, session=None, **kwargs):
        kwargs.setdefault("shuffle", lambda questions: None)
        kwargs.setdefault("tick_interval", 3600)
        runner = AssessmentRunner(gateway, session or va_session, "skill-1", **kwargs)
        runners.append(runner)
        return runner

    yield factory
    for runner in runners:
        runner.close()


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    return tmp_path / "history.db"
