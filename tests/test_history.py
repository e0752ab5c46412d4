# tests/test_history.py
from assessment.history import ResultHistory
from assessment.models import AssessmentConfig, Results

CONFIG = AssessmentConfig(
    skill_id="skill-1", skill_name="Bookkeeping",
    questions_per_test=3, time_limit_minutes=5, passing_score=70,
)


async def test_empty_stats(tmp_db):
    history = ResultHistory(tmp_db)
    await history.init_db()
    stats = await history.get_user_stats("user-va")
    assert stats["total_tests"] == 0
    assert stats["recent_tests"] == []


async def test_stats_aggregate_results(tmp_db):
    history = ResultHistory(tmp_db)
    await history.init_db()
    await history.save_result("user-va", "a1", CONFIG,
                              Results(score=33, passed=False, correct_count=1, total_questions=3))
    await history.save_result("user-va", "a2", CONFIG,
                              Results(score=100, passed=True, correct_count=3, total_questions=3))
    await history.save_result("someone-else", "a3", CONFIG,
                              Results(score=0, passed=False, correct_count=0, total_questions=3))

    stats = await history.get_user_stats("user-va")
    assert stats["total_tests"] == 2
    assert stats["avg_score"] == 66.5
    assert stats["best_score"] == 100
    assert stats["passed_count"] == 1
    assert [t["score"] for t in stats["recent_tests"]] == [100, 33]


async def test_init_creates_parent_dir(tmp_path):
    history = ResultHistory(tmp_path / "nested" / "history.db")
    await history.init_db()
    assert (tmp_path / "nested" / "history.db").exists()
