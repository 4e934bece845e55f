"""Medical report ingestion and analysis.

Uploads are stored under ``settings.upload_dir`` and recorded as PROCESSING;
``process_report`` runs on the Celery worker and moves the report to
COMPLETED or FAILED. Nothing is retried automatically, the owner re-queues a
FAILED report through ``retry_report``.
"""

import hashlib
import os
import uuid
from collections import OrderedDict
from sqlalchemy.orm import Session
from langchain_core.prompts import PromptTemplate
from carexpert import models
from carexpert.models import ReportStatus
from carexpert.config import settings
from carexpert.errors import ValidationError, Forbidden, NotFound, InvalidTransition, AnalysisError
from carexpert.services import llm, text_extraction
from carexpert.logger import get_logger

log = get_logger("reports")

CACHE_SIZE = 100
_analysis_cache: "OrderedDict[str, dict]" = OrderedDict()

REPORT_PROMPT = PromptTemplate.from_template(
	"""You are an advanced medical report analysis assistant. You will receive text extracted from laboratory medical reports. Your task is to interpret the report, detect abnormal results, explain possible causes, and give appropriate recommendations.

The input may include test names, units, reference ranges and results, qualitative results such as "Reactive" or "Negative", notes about test methods, and missing or noisy values.

You MUST respond only in the following JSON format:
{{
  "summary": "A brief interpretation of the report results, highlighting key findings.",
  "abnormal_values": [
	{{"term": "Test name", "value": "Test result value", "normal_range": "Reference range", "issue": "Explanation of the abnormality"}}
  ],
  "possible_conditions": ["Conditions associated with the abnormalities"],
  "recommendation": "Advice for the patient on next steps",
  "disclaimer": "A disclaimer stating that this is not a substitute for professional medical advice."
}}

Every field must always be present. Use empty arrays or empty strings when nothing applies.

Medical Report Text:
{text}"""
)


def clear_analysis_cache() -> None:
	_analysis_cache.clear()


def _valid_analysis(data: dict) -> bool:
	return (
		isinstance(data.get("summary"), str)
		and isinstance(data.get("abnormal_values"), list)
		and isinstance(data.get("possible_conditions"), list)
		and isinstance(data.get("recommendation"), str)
		and isinstance(data.get("disclaimer"), str)
	)


def analyze_report_text(text: str, use_cache: bool = True) -> dict:
	if not (text or "").strip():
		raise AnalysisError("No text provided for analysis", status_code=400)
	key = hashlib.sha256(text.encode("utf-8")).hexdigest()
	if use_cache and key in _analysis_cache:
		return _analysis_cache[key]
	reply = llm.get_llm().invoke(REPORT_PROMPT.format(text=text)).content
	if not reply:
		raise AnalysisError("Empty response from the analysis model")
	data = llm.extract_json(reply)
	if not _valid_analysis(data):
		log.error("invalid analysis structure: %s", reply[:500])
		raise AnalysisError("Invalid analysis structure from the analysis model")
	_analysis_cache[key] = data
	while len(_analysis_cache) > CACHE_SIZE:
		_analysis_cache.popitem(last=False)
	return data


def create_report(db: Session, patient: models.Patient, filename: str, content: bytes) -> models.Report:
	mime = text_extraction.mime_type_for(filename)
	if mime is None:
		raise ValidationError("Unsupported file type. Allowed types: PDF, JPG, JPEG, PNG")
	if not content:
		raise ValidationError("Uploaded file is empty")
	if len(content) > settings.max_report_size_bytes:
		raise ValidationError(
			f"File size exceeds the maximum allowed size of {settings.max_report_size_bytes // (1024 * 1024)} MB"
		)
	os.makedirs(settings.upload_dir, exist_ok=True)
	ext = os.path.splitext(filename)[1].lower()
	path = os.path.join(settings.upload_dir, f"{uuid.uuid4().hex}{ext}")
	with open(path, "wb") as f:
		f.write(content)
	report = models.Report(
		patient_id=patient.patient_id,
		filename=os.path.basename(filename),
		file_path=path,
		mime_type=mime,
		file_size=len(content),
		status=ReportStatus.PROCESSING,
		attempts=0,
	)
	db.add(report)
	db.commit()
	db.refresh(report)
	log.info("report queued id=%s patient=%s size=%s", report.report_id, patient.patient_id, len(content))
	return report


def process_report(db: Session, report_id: int) -> models.Report | None:
	report = db.query(models.Report).filter(models.Report.report_id == report_id).first()
	if not report:
		log.warning("report %s vanished before processing", report_id)
		return None
	if report.status != ReportStatus.PROCESSING:
		log.info("report %s is %s, skipping", report_id, report.status.value)
		return report
	report.attempts = (report.attempts or 0) + 1
	db.commit()
	try:
		text = text_extraction.extract_text(report.file_path)
		if not text.strip():
			raise text_extraction.ExtractionError("No text could be extracted from the report")
		report.extracted_text = text
		analysis = analyze_report_text(text)
	except Exception as e:
		log.exception("report %s failed on attempt %s", report_id, report.attempts)
		report.status = ReportStatus.FAILED
		report.error = str(e) or e.__class__.__name__
		db.commit()
		return report
	report.summary = analysis["summary"]
	report.abnormal_values = analysis["abnormal_values"]
	report.possible_conditions = [str(c) for c in analysis["possible_conditions"]]
	report.recommendation = analysis["recommendation"]
	report.disclaimer = analysis["disclaimer"]
	report.error = None
	report.status = ReportStatus.COMPLETED
	db.commit()
	log.info("report %s completed", report_id)
	return report


def get_report(db: Session, user: models.User, report_id: int) -> models.Report:
	report = db.query(models.Report).filter(models.Report.report_id == report_id).first()
	if not report:
		raise NotFound("Report not found")
	if user.role == models.Role.ADMIN:
		return report
	if not user.patient or user.patient.patient_id != report.patient_id:
		raise Forbidden("You can only view your own reports")
	return report


def list_reports(db: Session, patient_id: int) -> list[models.Report]:
	return db.query(models.Report).filter(
		models.Report.patient_id == patient_id
	).order_by(models.Report.created_at.desc(), models.Report.report_id.desc()).all()


def retry_report(db: Session, patient: models.Patient, report_id: int) -> models.Report:
	report = db.query(models.Report).filter(models.Report.report_id == report_id).first()
	if not report:
		raise NotFound("Report not found")
	if report.patient_id != patient.patient_id:
		raise Forbidden("You can only retry your own reports")
	count = db.query(models.Report).filter(
		models.Report.report_id == report_id,
		models.Report.status == ReportStatus.FAILED,
	).update({"status": ReportStatus.PROCESSING, "error": None}, synchronize_session=False)
	if count != 1:
		raise InvalidTransition("Only failed reports can be retried")
	db.commit()
	db.refresh(report)
	log.info("report %s re-queued", report_id)
	return report


def mark_queue_failed(db: Session, report_id: int, error: str) -> None:
	db.rollback()
	db.query(models.Report).filter(
		models.Report.report_id == report_id,
		models.Report.status == ReportStatus.PROCESSING,
	).update({"status": ReportStatus.FAILED, "error": error}, synchronize_session=False)
	db.commit()
	log.warning("report %s could not be queued: %s", report_id, error)
