from celery import Celery
from carexpert.config import settings
from carexpert.db import SessionLocal
from carexpert.services.reports import process_report

celery_app = Celery(
	"carexpert",
	broker=settings.celery_broker_url,
	backend=settings.celery_result_backend,
)
celery_app.conf.update(
	task_always_eager=settings.celery_task_always_eager,
	task_eager_propagates=True,
	worker_concurrency=settings.report_worker_concurrency,
	worker_prefetch_multiplier=1,
	task_acks_late=True,
)

@celery_app.task(name="reports.analyze", rate_limit=settings.report_rate_limit, acks_late=True)

def analyze_report_task(report_id: int) -> dict:
	# failures are written to the report row, the task itself never retries
	db = SessionLocal()
	try:
		report = process_report(db, report_id)
		return {"report_id": report_id, "status": report.status.value if report else None}
	finally:
		db.close()
