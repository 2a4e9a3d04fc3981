import os
import tempfile
from pathlib import Path

import pytest

# ---- テスト用DBパス（db を import する前に設定）----
_TMP_DIR = Path(tempfile.mkdtemp(prefix="lending_test_"))
os.environ["APP_DB_PATH"] = str(_TMP_DIR / "test_lending.db")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from config import LendingConfig  # noqa: E402
from db import Base, SessionLocal, engine  # noqa: E402
from orm import ItemORM, LoanORM, ReservationORM  # noqa: E402


@pytest.fixture(scope="session")
def app_module():
    import main

    Base.metadata.create_all(bind=engine)
    return main


@pytest.fixture()
def config():
    return LendingConfig()


@pytest.fixture()
def client(app_module, config):
    app = app_module.create_app(config)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session(app_module):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def session_factory(app_module):
    return SessionLocal


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # 各テスト前にテーブルを全消し（順序注意：loans/reservations -> items）
    db_session.execute(delete(LoanORM))
    db_session.execute(delete(ReservationORM))
    db_session.execute(delete(ItemORM))
    db_session.commit()
    yield
