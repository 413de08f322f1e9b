from datetime import date, timedelta

from app.engine import proficiency
from app.engine.types import ProficiencyLevel, Trend

TODAY = date(2026, 5, 1)


def test_level_table():
    assert proficiency.proficiency_level(100, 1) == ProficiencyLevel.UNKNOWN
    assert proficiency.proficiency_level(0, 2) == ProficiencyLevel.WEAK
    assert proficiency.proficiency_level(50, 2) == ProficiencyLevel.DEVELOPING
    assert proficiency.proficiency_level(66.7, 3) == ProficiencyLevel.MEDIUM
    assert proficiency.proficiency_level(80, 5) == ProficiencyLevel.STRONG
    assert proficiency.proficiency_level(80, 4) == ProficiencyLevel.MEDIUM
    assert proficiency.proficiency_level(95, 10) == ProficiencyLevel.MASTERED
    assert proficiency.proficiency_level(95, 9) == ProficiencyLevel.STRONG
    assert proficiency.proficiency_level(20, 10) == ProficiencyLevel.WEAK


def test_strong_to_mastered_at_boundary():
    before = proficiency.recalculate(9, 8, None, TODAY)
    assert before.proficiency_level == ProficiencyLevel.STRONG

    after = proficiency.recalculate(10, 9, before.accuracy_rate, TODAY)
    assert after.accuracy_rate == 90
    assert after.proficiency_level == ProficiencyLevel.MASTERED


def test_next_review_date():
    assert proficiency.next_review_date(ProficiencyLevel.MASTERED, 9, TODAY) == TODAY + timedelta(days=35)
    assert proficiency.next_review_date(ProficiencyLevel.STRONG, 2, TODAY) == TODAY + timedelta(days=16)
    assert proficiency.next_review_date(ProficiencyLevel.MEDIUM, 0, TODAY) == TODAY + timedelta(days=7)
    assert proficiency.next_review_date(ProficiencyLevel.DEVELOPING, 1, TODAY) == TODAY + timedelta(days=4)
    assert proficiency.next_review_date(ProficiencyLevel.WEAK, 0, TODAY) == TODAY + timedelta(days=1)
    assert proficiency.next_review_date(ProficiencyLevel.UNKNOWN, 1, TODAY) == TODAY + timedelta(days=2)


def test_trend_dead_band():
    assert proficiency.trend(70, None) == Trend.STABLE
    assert proficiency.trend(60, 50) == Trend.IMPROVING
    assert proficiency.trend(55, 50) == Trend.STABLE
    assert proficiency.trend(45, 50) == Trend.STABLE
    assert proficiency.trend(44, 50) == Trend.DECLINING


def test_confidence_values():
    assert proficiency.confidence_score(100, 20) == 100
    assert proficiency.confidence_score(100, 40) == 100
    assert proficiency.confidence_score(50, 0) == 25
    assert proficiency.confidence_score(0, 20) == 0
    assert proficiency.confidence_score(90, 10) == 68


def test_confidence_monotonic_and_bounded():
    for attempts in (0, 1, 5, 10, 19, 20, 50):
        scores = [proficiency.confidence_score(acc, attempts) for acc in range(0, 101)]
        assert scores == sorted(scores)
        assert all(0 <= s <= 100 for s in scores)

    for accuracy in (0, 12.5, 50, 77.7, 100):
        scores = [proficiency.confidence_score(accuracy, n) for n in range(0, 60)]
        assert scores == sorted(scores)


def test_accuracy_without_attempts():
    assert proficiency.accuracy_rate(0, 0) == 0


def test_recalculate_snapshot():
    snapshot = proficiency.recalculate(4, 3, 40.0, TODAY)
    assert snapshot.accuracy_rate == 75
    assert snapshot.proficiency_level == ProficiencyLevel.MEDIUM
    assert snapshot.recent_trend == Trend.IMPROVING
    assert snapshot.next_review_date == TODAY + timedelta(days=10)
    assert snapshot.confidence_score == 45
