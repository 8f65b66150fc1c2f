import sys
import os
import tempfile
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "roadmap-hub-test-logs"))

import uuid
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.constants import RoleEnum
from app.core.database import Base
from app.core.security import create_access_token
from app.crud.category import category as crud_category
from app.crud.lesson import lesson as crud_lesson
from app.crud.roadmap import roadmap as crud_roadmap
from app.crud.user import user as crud_user
from app.models.category import Category
from app.models.enrollment import RoadmapEnrollment  # noqa: F401
from app.models.lesson import Lesson
from app.models.lesson_progress import LessonProgress  # noqa: F401
from app.models.roadmap import Roadmap
from app.models.user import User
from app.schemas.lesson import LessonCreate
from app.schemas.roadmap import RoadmapCreate
from app.schemas.user import UserCreate
from app.utils import deps as deps_utils
import main

test_db_url = settings.TEST_DATABASE_URL or "sqlite://"


@pytest.fixture(scope="function")
def database_engine():
    if test_db_url.startswith("sqlite"):
        engine = create_engine(
            test_db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(test_db_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(database_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[deps_utils.get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session):
    def _user_factory(role: RoleEnum = RoleEnum.LEARNER, is_active: bool = True) -> User:
        user_in = UserCreate(
            full_name=f"Test {role.value}",
            email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
            role=role,
            is_active=is_active,
        )
        user = crud_user.create(db_session, obj_in=user_in, commit=True)
        db_session.refresh(user)
        return user
    return _user_factory


@pytest.fixture
def category_factory(db_session):
    def _category_factory(label: str = None) -> Category:
        label = label or f"Category {uuid.uuid4().hex[:6]}"
        category = crud_category.get_by_label(db_session, label=label)
        if not category:
            category = crud_category.create(db_session, obj_in={"label": label}, commit=True)
        db_session.refresh(category)
        return category
    return _category_factory


@pytest.fixture
def roadmap_factory(db_session, category_factory):
    """Create a roadmap with ``lesson_count`` active lessons, ordered 1..n."""
    def _roadmap_factory(lesson_count: int = 3, category: Category = None, is_active: bool = True,
                         minutes_per_lesson: int = 30) -> Roadmap:
        category = category or category_factory()
        roadmap = crud_roadmap.create(db_session, obj_in=RoadmapCreate(
            title=f"Roadmap {uuid.uuid4().hex[:6]}",
            category_id=category.id,
            is_active=is_active,
        ))
        for i in range(lesson_count):
            crud_lesson.create(db_session, obj_in=LessonCreate(
                roadmap_id=roadmap.id,
                title=f"Lesson {i + 1}",
                order_index=i + 1,
                estimated_minutes=minutes_per_lesson,
            ))
        db_session.commit()
        db_session.refresh(roadmap)
        return roadmap
    return _roadmap_factory


@pytest.fixture
def lessons_of(db_session):
    def _lessons_of(roadmap: Roadmap):
        return (
            db_session.query(Lesson)
            .filter(Lesson.roadmap_id == roadmap.id)
            .order_by(Lesson.order_index)
            .all()
        )
    return _lessons_of


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _auth_headers
