import random
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.models.concept import Concept, QuestionConcept
from app.models.question import Question, Subject, Topic
from app.models.user import User
from app.services.background import BackgroundTaskRunner, get_background_runner
from app.services.practice_service import PracticeService
from app.utils.database import get_db, get_session_factory, import_models
from app.utils.locks import KeyedLock


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Throw-away sqlite file per test"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    import_models().metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def runner():
    runner = BackgroundTaskRunner(max_workers=2, max_pending=10, name="test")
    yield runner
    runner.shutdown(wait=True)


@pytest.fixture(scope="function")
def locks():
    return KeyedLock()


@pytest.fixture(scope="function")
def practice_service(db_session, session_factory, runner, locks):
    return PracticeService(
        db_session,
        session_factory=session_factory,
        runner=runner,
        rng=random.Random(7),
        locks=locks,
    )


@pytest.fixture(scope="function")
def make_user(db_session):
    def _make(display_name="learner", email=None):
        user = User(display_name=display_name, email=email, is_active=True)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make


@pytest.fixture(scope="function")
def make_catalog(db_session):
    """
    Build a subject/topic with concepts and linked questions

    Every question has correct_answer_index 1. Returns ids only, so tests do
    not hold on to ORM instances across commits.
    """
    def _make(num_concepts=3, questions_per_concept=4, unlinked=0, difficulty="medium"):
        subject = Subject(name="Maths", is_active=True)
        db_session.add(subject)
        db_session.flush()
        topic = Topic(subject_id=subject.id, name="Arithmetic")
        db_session.add(topic)
        db_session.flush()

        concept_ids = []
        by_concept = {}
        question_ids = []
        for c in range(num_concepts):
            concept = Concept(topic_id=topic.id, name=f"concept-{c}", is_active=True)
            db_session.add(concept)
            db_session.flush()
            concept_ids.append(concept.id)
            by_concept[concept.id] = []
            for q in range(questions_per_concept):
                question = Question(
                    topic_id=topic.id,
                    question_text=f"c{c} q{q}",
                    difficulty=difficulty,
                    correct_answer_index=1,
                    is_active=True,
                )
                db_session.add(question)
                db_session.flush()
                db_session.add(QuestionConcept(question_id=question.id, concept_id=concept.id, is_primary=True))
                by_concept[concept.id].append(question.id)
                question_ids.append(question.id)

        unlinked_ids = []
        for q in range(unlinked):
            question = Question(topic_id=topic.id, question_text=f"loose {q}",
                                difficulty=difficulty, correct_answer_index=1, is_active=True)
            db_session.add(question)
            db_session.flush()
            unlinked_ids.append(question.id)

        db_session.commit()
        return SimpleNamespace(
            topic_id=topic.id,
            concept_ids=concept_ids,
            by_concept=by_concept,
            question_ids=question_ids,
            unlinked_ids=unlinked_ids,
            all_question_ids=question_ids + unlinked_ids,
        )
    return _make


@pytest.fixture(scope="function")
def client(db_session, session_factory, runner):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_background_runner] = lambda: runner
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
