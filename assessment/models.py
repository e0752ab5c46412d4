"""
assessment/models.py — Assessment config, questions, the in-progress attempt
and its results.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

UNANSWERED = -1


class AssessmentConfig(BaseModel):
    skill_id: str
    skill_name: str
    skill_category: str = ""
    questions_per_test: int = Field(..., ge=1)
    time_limit_minutes: int = Field(..., ge=1)
    passing_score: int = Field(..., ge=0, le=100)
    retry_wait_hours: int = Field(default=24, ge=0)

    model_config = {"frozen": True}

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60


class Eligibility(BaseModel):
    can_take: bool
    reason: Optional[str] = None


class Question(BaseModel):
    question_id: str
    prompt: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    difficulty: str = ""
    category: str = ""

    model_config = {"frozen": True}


class AnswerRecord(BaseModel):
    question_id: str
    selected_answer: int


class Results(BaseModel):
    score: int
    passed: bool
    correct_count: int
    total_questions: int


class AttemptSession(BaseModel):
    """
    One attempt in progress. Lives only in memory: created on start,
    dropped on submit or when the runner is closed.
    """
    attempt_id: str
    questions: List[Question] = Field(..., min_length=1)
    answers: Dict[str, int] = Field(default_factory=dict)
    current_index: int = 0
    seconds_remaining: int = Field(default=0, ge=0)

    @field_validator("current_index", mode="after")
    @classmethod
    def validate_index(cls, v, info):
        questions = info.data.get("questions", [])
        if questions and not 0 <= v < len(questions):
            raise ValueError(f"current_index must be in 0..{len(questions) - 1}")
        return v

    @model_validator(mode="after")
    def validate_answers(self):
        known = {q.question_id for q in self.questions}
        unknown = set(self.answers) - known
        if unknown:
            raise ValueError(f"answers for unknown questions: {sorted(unknown)}")
        return self

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    def record_answer(self, option_index: int) -> None:
        question = self.current_question
        if not 0 <= option_index < len(question.options):
            raise IndexError(
                f"option {option_index} out of range for question {question.question_id}"
            )
        self.answers[question.question_id] = option_index

    def move_to(self, index: int) -> None:
        self.current_index = max(0, min(index, len(self.questions) - 1))

    def build_answers(self) -> List[AnswerRecord]:
        return [
            AnswerRecord(
                question_id=q.question_id,
                selected_answer=self.answers.get(q.question_id, UNANSWERED),
            )
            for q in self.questions
        ]
