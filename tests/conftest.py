"""
Test configuration and fixtures.

Every test runs against a fresh in-memory SQLite database and a fake model
endpoint; nothing leaves the process.
"""
import os
from typing import AsyncGenerator, Generator

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set testing environment before the application modules read it
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['GEMINI_API_KEY'] = 'test-api-key'
os.environ['ALLOWED_HOSTS'] = 'localhost,127.0.0.1'
os.environ['ENVIRONMENT'] = 'development'

import ai_service  # noqa: E402
import app as bookstore  # noqa: E402
import main  # noqa: E402
from auth import create_access_token, get_password_hash  # noqa: E402
from database import Base, get_db  # noqa: E402
from models import User  # noqa: E402

from .fakes import FakeModel  # noqa: E402

fake = Faker()

BASE_URL = 'http://localhost'


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test"""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def ai_client(fake_model: FakeModel) -> ai_service.GeminiClient:
    return ai_service.GeminiClient(
        api_key='test-api-key',
        model='test-model',
        base_url='https://model.test/v1beta',
        timeout=5.0,
        transport=fake_model.transport(),
    )


@pytest.fixture
async def client(db_session: Session, ai_client) -> AsyncGenerator[AsyncClient, None]:
    """Task manager client with database and model overrides"""
    def override_get_db():
        yield db_session

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[ai_service.get_ai_client] = lambda: ai_client

    transport = ASGITransport(app=main.app)
    async with AsyncClient(transport=transport, base_url=BASE_URL) as ac:
        yield ac

    main.app.dependency_overrides.clear()


@pytest.fixture
async def bookstore_client(db_session: Session) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db():
        yield db_session

    bookstore.app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=bookstore.app)
    async with AsyncClient(transport=transport, base_url=BASE_URL) as ac:
        yield ac

    bookstore.app.dependency_overrides.clear()


def _make_user(db_session: Session, password: str) -> User:
    user = User(
        name=fake.name(),
        email=fake.unique.email(),
        hashed_password=get_password_hash(password),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_user(db_session: Session) -> User:
    return _make_user(db_session, 'testpassword123')


@pytest.fixture
def other_user(db_session: Session) -> User:
    return _make_user(db_session, 'otherpassword123')


def headers_for(user: User) -> dict:
    token = create_access_token({'sub': str(user.id), 'email': user.email})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    return headers_for(other_user)
