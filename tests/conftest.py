import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Import models so Base.metadata is populated for create_all.
import tempolink.models  # noqa: F401
from tempolink.auth import get_token_claims
from tempolink.database import Base, get_db


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


class FakeAuth:
    """Holds the claims the overridden token dependency hands out"""

    def __init__(self):
        self.claims = None

    def login(self, clerk_id: str, **claims):
        self.claims = {"sub": clerk_id, **claims}

    def logout(self):
        self.claims = None


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def client(db, auth):
    from tempolink.domain.teachers.router import rate_limit_search
    from tempolink.main import app
    from tempolink.routes.bio import rate_limit_bio

    def override_get_db():
        yield db

    async def override_get_token_claims():
        if auth.claims is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return auth.claims

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_claims] = override_get_token_claims
    app.dependency_overrides[rate_limit_search] = no_rate_limit
    app.dependency_overrides[rate_limit_bio] = no_rate_limit

    yield TestClient(app)

    app.dependency_overrides.clear()
