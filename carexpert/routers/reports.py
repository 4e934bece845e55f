from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session
from typing import List
from carexpert.db import get_db
from carexpert import models
from carexpert.config import settings
from carexpert.deps import get_current_user, current_patient
from carexpert.errors import QueueUnavailable
from carexpert.schemas import ReportAccepted, ReportOut
from carexpert.services import reports
from carexpert.workers.celery_app import analyze_report_task
from carexpert.logger import get_logger

router = APIRouter(prefix="/api/report", tags=["report"])
log = get_logger("reports_router")


def _enqueue(db: Session, report_id: int) -> None:
	try:
		analyze_report_task.delay(report_id)
	except Exception as e:
		log.exception("enqueue failed for report %s", report_id)
		# leave it FAILED so the owner can retry once the broker is back
		reports.mark_queue_failed(db, report_id, f"Could not queue report for processing: {e}")
		raise QueueUnavailable() from e

@router.post("", response_model=ReportAccepted, status_code=202)

async def upload_report(file: UploadFile = File(...), patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	# one byte past the limit is enough for create_report to reject it
	content = await file.read(settings.max_report_size_bytes + 1)
	report = reports.create_report(db, patient, file.filename or "", content)
	_enqueue(db, report.report_id)
	return {"report_id": report.report_id, "status": models.ReportStatus.PROCESSING}

@router.get("", response_model=List[ReportOut])
def my_reports(patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	return reports.list_reports(db, patient.patient_id)

@router.get("/{report_id}", response_model=ReportOut)
def get_report(report_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return reports.get_report(db, user, report_id)

@router.post("/{report_id}/retry", response_model=ReportAccepted, status_code=202)

def retry_report(report_id: int, patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	report = reports.retry_report(db, patient, report_id)
	_enqueue(db, report.report_id)
	return {"report_id": report.report_id, "status": models.ReportStatus.PROCESSING, "message": "Report re-queued for processing"}
