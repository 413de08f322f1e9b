import time
from datetime import timedelta

import pytest

from app.engine.selectors import CandidateSelector, default_selectors
from app.engine.types import Category, PracticeConfig
from app.models.concept_stat import ConceptStat
from app.models.mistake import MistakeRecord
from app.models.practice_session import PracticeSession, SessionItem
from app.models.user_answer import UserAnswer
from app.services.practice_service import PracticeService, accuracy_percent
from app.utils.exceptions import AlreadyCompleted, ConfigInvalid, NotFound, PersistenceError, ValidationError
from app.utils.helpers import utc_now, utc_today

DEFAULT = PracticeConfig(new_topics=40, strong_areas=20, mistakes=30, time_consuming=10)


def _items(db_session, session_id):
    db_session.expire_all()
    return db_session.query(SessionItem).filter(
        SessionItem.session_id == session_id
    ).order_by(SessionItem.order_index).all()


@pytest.mark.asyncio
async def test_generate_for_new_user_fills_from_fallback(practice_service, make_user, make_catalog, db_session):
    user = make_user()
    make_catalog(num_concepts=3, questions_per_concept=4)

    result = await practice_service.generate(user.id, 10, DEFAULT)

    assert result["total_questions_actual"] == 10
    assert result["breakdown"] == {"mistake": 3, "time_consuming": 1, "strong_area": 2, "new_topic": 4}
    items = _items(db_session, result["session_id"])
    assert len(items) == 10
    assert len({i.question_id for i in items}) == 10
    assert [i.order_index for i in items] == list(range(10))

    session = db_session.get(PracticeSession, result["session_id"])
    assert session.total_questions == 10
    assert session.total_questions_actual == 10
    assert session.status == "active"
    assert session.config_used == DEFAULT.to_dict()


@pytest.mark.asyncio
async def test_generate_reports_true_count_when_short(practice_service, make_user, make_catalog):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=3, unlinked=2)

    result = await practice_service.generate(user.id, 10, DEFAULT)

    assert result["total_questions_actual"] == 5
    assert sum(result["breakdown"].values()) == 5


@pytest.mark.asyncio
async def test_generate_without_questions_persists_nothing(practice_service, make_user, db_session):
    user = make_user()

    result = await practice_service.generate(user.id, 5, DEFAULT)

    assert result["session_id"] is None
    assert result["total_questions_actual"] == 0
    assert db_session.query(PracticeSession).count() == 0


@pytest.mark.asyncio
async def test_generate_validates_config_before_anything_else(practice_service):
    with pytest.raises(ConfigInvalid):
        await practice_service.generate(12345, 10, PracticeConfig(50, 20, 30, 10))


@pytest.mark.asyncio
async def test_generate_unknown_user(practice_service):
    with pytest.raises(NotFound):
        await practice_service.generate(12345, 10, DEFAULT)


@pytest.mark.asyncio
async def test_generate_rejects_bad_total(practice_service, make_user):
    user = make_user()
    with pytest.raises(ValidationError):
        await practice_service.generate(user.id, 0, DEFAULT)
    with pytest.raises(ValidationError):
        await practice_service.generate(user.id, 1000, DEFAULT)


@pytest.mark.asyncio
async def test_generate_prefers_unresolved_mistakes(practice_service, make_user, make_catalog, db_session, runner):
    user = make_user()
    make_catalog(num_concepts=3, questions_per_concept=4)

    first = await practice_service.generate(user.id, 3, DEFAULT)
    items = _items(db_session, first["session_id"])
    practice_service.submit(user.id, first["session_id"], [
        {"item_id": i.id, "selected_option": 0, "time_taken": 5} for i in items
    ])
    runner.wait_idle(timeout=5)
    missed = {i.question_id for i in items}

    practice_service.save_config(user.id, PracticeConfig(0, 0, 100, 0))
    second = await practice_service.generate(user.id, 3)

    assert second["breakdown"]["mistake"] == 3
    assert {i.question_id for i in _items(db_session, second["session_id"])} == missed


@pytest.mark.asyncio
async def test_failed_or_slow_selectors_fall_back(db_session, session_factory, runner, locks,
                                                  make_user, make_catalog):
    class BrokenSelector(CandidateSelector):
        category = Category.NEW_TOPIC

        def _question_ids(self, store, user_id, target, today):
            raise RuntimeError("store unavailable")

    class SlowSelector(CandidateSelector):
        category = Category.MISTAKE

        def _question_ids(self, store, user_id, target, today):
            time.sleep(0.5)
            return [1, 2, 3]

    selectors = default_selectors()
    selectors[Category.NEW_TOPIC] = BrokenSelector(overfetch=3)
    selectors[Category.MISTAKE] = SlowSelector(overfetch=2)
    service = PracticeService(db_session, session_factory=session_factory, runner=runner,
                              locks=locks, selectors=selectors, generate_timeout=0.1)
    user = make_user()
    make_catalog(num_concepts=2, questions_per_concept=5)

    result = await service.generate(user.id, 10, DEFAULT)

    assert result["total_questions_actual"] == 10
    assert result["breakdown"]["new_topic"] == 4
    assert result["breakdown"]["mistake"] == 3


@pytest.mark.asyncio
async def test_persist_failure_leaves_no_session(practice_service, make_user, make_catalog, db_session, monkeypatch):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=4)

    def broken_add_items(session_id, items):
        raise RuntimeError("disk full")

    monkeypatch.setattr(practice_service.session_repo, "add_items", broken_add_items)

    with pytest.raises(PersistenceError):
        await practice_service.generate(user.id, 4, DEFAULT)
    assert db_session.query(PracticeSession).count() == 0
    assert db_session.query(SessionItem).count() == 0


@pytest.mark.asyncio
async def test_submit_grades_and_records(practice_service, make_user, make_catalog, db_session, runner):
    user = make_user()
    catalog = make_catalog(num_concepts=1, questions_per_concept=3)
    generated = await practice_service.generate(user.id, 3, DEFAULT)
    session_id = generated["session_id"]
    items = _items(db_session, session_id)

    result = practice_service.submit(user.id, session_id, [
        {"item_id": items[0].id, "selected_option": 1, "time_taken": 10},
        {"item_id": items[1].id, "selected_option": 0, "time_taken": 20},
        {"item_id": items[2].id, "selected_option": None, "time_taken": 3},
    ])

    assert result["status"] == "completed"
    assert result["partial"] is False
    assert result["summary"] == {"answered": 2, "correct": 1, "skipped": 1, "accuracy": 50}
    assert [r["status"] for r in result["results"]] == ["processed"] * 3
    assert result["results"][0]["correct_answer"] == 1

    db_session.expire_all()
    session = db_session.get(PracticeSession, session_id)
    assert session.questions_answered == 2
    assert session.correct_answers == 1
    assert session.completed_at is not None

    mistakes = db_session.query(MistakeRecord).filter(MistakeRecord.user_id == user.id).all()
    assert {m.question_id for m in mistakes} == {items[1].question_id, items[2].question_id}
    assert all(m.retry_count == 0 and m.is_resolved is False for m in mistakes)
    assert all(m.difficulty == "medium" for m in mistakes)

    assert db_session.query(UserAnswer).filter(UserAnswer.user_id == user.id).count() == 3
    skipped_answer = db_session.query(UserAnswer).filter(UserAnswer.is_skipped == True).one()
    assert skipped_answer.is_correct is False

    assert runner.wait_idle(timeout=5)
    db_session.expire_all()
    stat = db_session.query(ConceptStat).filter(
        ConceptStat.user_id == user.id,
        ConceptStat.concept_id == catalog.concept_ids[0]
    ).one()
    assert stat.total_attempts == 2
    assert stat.correct_attempts == 1
    assert stat.avg_time_seconds == 15
    assert stat.accuracy_rate == 50
    assert stat.proficiency_level == "developing"
    assert stat.recent_trend == "stable"
    assert stat.next_review_date == utc_today() + timedelta(days=4)


@pytest.mark.asyncio
async def test_repeat_miss_increments_existing_mistake(practice_service, make_user, make_catalog, db_session, runner):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=2)

    for _ in range(2):
        generated = await practice_service.generate(user.id, 2, DEFAULT)
        items = _items(db_session, generated["session_id"])
        practice_service.submit(user.id, generated["session_id"], [
            {"item_id": i.id, "selected_option": 3, "time_taken": 4} for i in items
        ])
    runner.wait_idle(timeout=5)

    db_session.expire_all()
    mistakes = db_session.query(MistakeRecord).filter(MistakeRecord.user_id == user.id).all()
    assert len(mistakes) == 2
    assert all(m.retry_count == 1 for m in mistakes)


@pytest.mark.asyncio
async def test_resubmit_completed_session(practice_service, make_user, make_catalog, db_session):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=2)
    generated = await practice_service.generate(user.id, 2, DEFAULT)
    items = _items(db_session, generated["session_id"])
    answers = [{"item_id": i.id, "selected_option": 1, "time_taken": 1} for i in items]

    practice_service.submit(user.id, generated["session_id"], answers)
    with pytest.raises(AlreadyCompleted):
        practice_service.submit(user.id, generated["session_id"], answers)


@pytest.mark.asyncio
async def test_submit_rejects_foreign_items_before_writing(practice_service, make_user, make_catalog, db_session):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=2)
    generated = await practice_service.generate(user.id, 2, DEFAULT)
    items = _items(db_session, generated["session_id"])

    with pytest.raises(ValidationError):
        practice_service.submit(user.id, generated["session_id"], [
            {"item_id": items[0].id, "selected_option": 1, "time_taken": 1},
            {"item_id": 99999, "selected_option": 1, "time_taken": 1},
        ])
    with pytest.raises(ValidationError):
        practice_service.submit(user.id, generated["session_id"], [
            {"item_id": items[0].id, "selected_option": 1, "time_taken": 1},
            {"item_id": items[0].id, "selected_option": 2, "time_taken": 1},
        ])
    assert db_session.query(UserAnswer).count() == 0
    assert all(not i.is_answered for i in _items(db_session, generated["session_id"]))


@pytest.mark.asyncio
async def test_submit_other_users_session(practice_service, make_user, make_catalog, db_session):
    owner = make_user("owner")
    other = make_user("other")
    make_catalog(num_concepts=1, questions_per_concept=2)
    generated = await practice_service.generate(owner.id, 2, DEFAULT)

    with pytest.raises(NotFound):
        practice_service.submit(other.id, generated["session_id"], [])


@pytest.mark.asyncio
async def test_submit_timeout_keeps_durable_prefix(db_session, session_factory, runner, locks,
                                                   make_user, make_catalog):
    ticks = iter([0, 0, 100, 100, 100])
    service = PracticeService(db_session, session_factory=session_factory, runner=runner,
                              locks=locks, submit_timeout=10, clock=lambda: next(ticks))
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=3)
    generated = await service.generate(user.id, 3, DEFAULT)
    session_id = generated["session_id"]
    items = _items(db_session, session_id)
    answers = [{"item_id": i.id, "selected_option": 1, "time_taken": 2} for i in items]

    partial = service.submit(user.id, session_id, answers)

    assert partial["partial"] is True
    assert partial["status"] == "active"
    assert len(partial["results"]) == 1

    retry_service = PracticeService(db_session, session_factory=session_factory, runner=runner, locks=locks)
    result = retry_service.submit(user.id, session_id, answers)
    assert result["partial"] is False
    assert result["status"] == "completed"
    assert [r["status"] for r in result["results"]] == ["already_answered", "processed", "processed"]
    assert result["summary"]["answered"] == 2
    runner.wait_idle(timeout=5)


@pytest.mark.asyncio
async def test_today_summary_and_next(practice_service, make_user, make_catalog, db_session):
    user = make_user()
    make_catalog(num_concepts=2, questions_per_concept=2)

    assert practice_service.get_today_status(user.id)["status"] == "not_started"

    generated = await practice_service.generate(user.id, 4, DEFAULT)
    session_id = generated["session_id"]
    today = practice_service.get_today_status(user.id)
    assert today["status"] == "in_progress"
    assert today["session_id"] == session_id
    assert today["total_questions"] == 4

    nxt = practice_service.get_next_item(user.id, session_id)
    assert nxt["completed"] is False
    assert nxt["item"]["order_index"] == 0
    assert nxt["item"]["question"]["id"] == nxt["item"]["question_id"]

    items = _items(db_session, session_id)
    practice_service.submit(user.id, session_id, [
        {"item_id": i.id, "selected_option": 1 if n < 3 else 2, "time_taken": 5}
        for n, i in enumerate(items)
    ])

    assert practice_service.get_next_item(user.id, session_id) == {"completed": True, "item": None}
    assert practice_service.get_today_status(user.id)["status"] == "completed"

    summary = practice_service.get_summary(user.id, session_id)
    assert summary["accuracy"] == 75
    assert sum(b["total"] for b in summary["breakdown"].values()) == 4
    assert sum(b["correct"] for b in summary["breakdown"].values()) == 3
    assert set(summary["breakdown"]) == {"mistake", "time_consuming", "strong_area", "new_topic"}

    detail = practice_service.get_session(user.id, session_id)
    assert len(detail["items"]) == 4
    assert practice_service.get_history(user.id)[0]["id"] == session_id


def test_streak(practice_service, make_user, db_session):
    user = make_user()
    now = utc_now()
    for days_ago, status in [(0, "completed"), (1, "completed"), (1, "completed"),
                             (3, "completed"), (4, "completed"), (5, "completed"),
                             (2, "active")]:
        db_session.add(PracticeSession(
            user_id=user.id, total_questions=5, status=status,
            started_at=now - timedelta(days=days_ago),
        ))
    db_session.commit()

    assert practice_service.get_streak(user.id) == {"current_streak": 2, "best_streak": 3}


def test_streak_without_sessions(practice_service, make_user):
    user = make_user()
    assert practice_service.get_streak(user.id) == {"current_streak": 0, "best_streak": 0}


def test_config_defaults_and_save(practice_service, make_user):
    user = make_user()
    assert practice_service.get_config(user.id) == DEFAULT

    saved = practice_service.save_config(user.id, PracticeConfig(25, 25, 25, 25))
    assert saved == PracticeConfig(25, 25, 25, 25)
    assert practice_service.get_config(user.id) == saved

    with pytest.raises(ConfigInvalid):
        practice_service.save_config(user.id, PracticeConfig(25, 25, 25, 20))
    assert practice_service.get_config(user.id) == saved


def test_accuracy_percent_rounds_half_up():
    assert accuracy_percent(0, 0) == 0
    assert accuracy_percent(1, 2) == 50
    assert accuracy_percent(1, 3) == 33
    assert accuracy_percent(2, 3) == 67
    assert accuracy_percent(1, 8) == 13


@pytest.mark.asyncio
async def test_second_submit_with_a_stale_session_is_rejected(practice_service, session_factory, runner, locks,
                                                              make_user, make_catalog, db_session):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=3)
    generated = await practice_service.generate(user.id, 3, DEFAULT)
    session_id = generated["session_id"]
    items = _items(db_session, session_id)
    answers = [{"item_id": i.id, "selected_option": 1, "time_taken": 2} for i in items]

    other_db = session_factory()
    try:
        other = PracticeService(other_db, session_factory=session_factory, runner=runner, locks=locks)
        assert other.get_session(user.id, session_id)["status"] == "active"

        assert practice_service.submit(user.id, session_id, answers)["status"] == "completed"

        with pytest.raises(AlreadyCompleted):
            other.submit(user.id, session_id, answers)
    finally:
        other_db.close()
    assert runner.wait_idle(timeout=5)

    db_session.expire_all()
    assert db_session.query(UserAnswer).count() == 3


@pytest.mark.asyncio
async def test_slow_fallback_pool_yields_partial_session(practice_service, make_user, make_catalog, monkeypatch):
    user = make_user()
    make_catalog(num_concepts=1, questions_per_concept=2, unlinked=5)
    practice_service.generate_timeout = 0.1

    def slow_fetch(exclude_ids, limit):
        time.sleep(0.5)
        return []

    monkeypatch.setattr(practice_service, "_fetch_fallback", slow_fetch)
    config = PracticeConfig(new_topics=100, strong_areas=0, mistakes=0, time_consuming=0)

    result = await practice_service.generate(user.id, 5, config)

    assert result["total_questions_actual"] == 2
    assert result["breakdown"]["new_topic"] == 2


@pytest.mark.asyncio
async def test_failed_answer_keeps_counters_for_committed_prefix(practice_service, make_user, make_catalog,
                                                                 db_session, runner, monkeypatch):
    user = make_user()
    catalog = make_catalog(num_concepts=1, questions_per_concept=3)
    generated = await practice_service.generate(user.id, 3, DEFAULT)
    session_id = generated["session_id"]
    items = _items(db_session, session_id)

    def broken_record_miss(user_id, question, selected_option):
        raise RuntimeError("mistake table locked")

    monkeypatch.setattr(practice_service.mistake_service, "record_miss", broken_record_miss)

    with pytest.raises(RuntimeError):
        practice_service.submit(user.id, session_id, [
            {"item_id": items[0].id, "selected_option": 1, "time_taken": 6},
            {"item_id": items[1].id, "selected_option": 0, "time_taken": 6},
            {"item_id": items[2].id, "selected_option": 1, "time_taken": 6},
        ])

    db_session.expire_all()
    session = db_session.get(PracticeSession, session_id)
    assert session.status == "active"
    assert session.questions_answered == 1
    assert session.correct_answers == 1
    assert [i.is_answered for i in _items(db_session, session_id)] == [True, False, False]

    assert runner.wait_idle(timeout=5)
    db_session.expire_all()
    stat = db_session.query(ConceptStat).filter(
        ConceptStat.user_id == user.id,
        ConceptStat.concept_id == catalog.concept_ids[0]
    ).one()
    assert stat.total_attempts == 1
