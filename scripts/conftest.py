import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite:///./test_carexpert.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["NOTIFICATION_EMAIL_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="carexpert-uploads-")

import pytest
from fastapi.testclient import TestClient
from carexpert.db import Base, engine, SessionLocal
from carexpert.main import app
from carexpert.security import create_access_token
from carexpert.services import accounts, reports

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fresh_db():
	Base.metadata.drop_all(bind=engine)
	Base.metadata.create_all(bind=engine)
	reports.clear_analysis_cache()
	yield


@pytest.fixture
def db():
	s = SessionLocal()
	yield s
	s.close()


@pytest.fixture
def client():
	with TestClient(app) as c:
		yield c


@pytest.fixture
def make_doctor(db):
	def _make(first="Meera", last="Iyer", specialty="Cardiology", city="Pune"):
		email = f"{first}.{last}@example.com".lower()
		return accounts.signup(db, first, last, email, PASSWORD, "DOCTOR", specialty, city).doctor
	return _make


@pytest.fixture
def make_patient(db):
	def _make(first="Ravi", last="Kumar"):
		email = f"{first}.{last}@example.com".lower()
		return accounts.signup(db, first, last, email, PASSWORD, "PATIENT").patient
	return _make


def auth(user_id: int) -> dict:
	return {"Authorization": f"Bearer {create_access_token(user_id)}"}
