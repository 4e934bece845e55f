
def test_imports():
	import carexpert.main  # noqa: F401
	import carexpert.models  # noqa: F401
	import carexpert.routers.users  # noqa: F401
	import carexpert.routers.doctors  # noqa: F401
	import carexpert.routers.patients  # noqa: F401
	import carexpert.routers.appointments  # noqa: F401
	import carexpert.routers.chat  # noqa: F401
	import carexpert.routers.ai_chat  # noqa: F401
	import carexpert.routers.reports  # noqa: F401
	import carexpert.workers.celery_app  # noqa: F401


def test_root(client):
	assert client.get("/").json()["status"] == "ok"


def test_seed_runs(db):
	from carexpert import models
	from scripts.seed import seed
	seed()
	seed()
	assert db.query(models.Doctor).count() == 2
	assert db.query(models.TimeSlot).count() == 2 * 5 * 6
