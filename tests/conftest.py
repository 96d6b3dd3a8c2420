import os

# Point the app at a throwaway database before anything imports it
os.environ["DATABASE_URL"] = "sqlite://"
for key in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "LOG_FILE", "SEED_ON_STARTUP"):
    os.environ.pop(key, None)

import pytest
from fastapi.testclient import TestClient

from chorely.database import SessionLocal, engine
from chorely.models import Base


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from chorely.main import app

    with TestClient(app) as test_client:
        yield test_client
        # Release the shared connection before shutdown disposes the engine
        db.close()
