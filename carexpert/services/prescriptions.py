import io
from xml.sax.saxutils import escape
from sqlalchemy.orm import Session
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from carexpert import models
from carexpert.errors import NotFound
from carexpert.logger import get_logger

log = get_logger("prescriptions")


def list_prescriptions(db: Session, patient_id: int) -> list[models.Prescription]:
	return db.query(models.Prescription).filter(
		models.Prescription.patient_id == patient_id
	).order_by(models.Prescription.date_issued.desc(), models.Prescription.prescription_id.desc()).all()


def get_prescription_for(db: Session, user: models.User, prescription_id: int) -> models.Prescription:
	"""Readable by the patient it was issued to, the issuing doctor, or an admin."""
	p = db.query(models.Prescription).filter(models.Prescription.prescription_id == prescription_id).first()
	if not p:
		raise NotFound("Prescription not found")
	if user.role == models.Role.ADMIN:
		return p
	if user.patient and user.patient.patient_id == p.patient_id:
		return p
	if user.doctor and user.doctor.doctor_id == p.doctor_id:
		return p
	raise NotFound("Prescription not found")


def render_pdf(prescription: models.Prescription) -> bytes:
	buffer = io.BytesIO()
	margin = 0.75 * inch
	doc = SimpleDocTemplate(
		buffer,
		pagesize=A4,
		rightMargin=margin,
		leftMargin=margin,
		topMargin=margin,
		bottomMargin=margin,
		title=f"Prescription #{prescription.prescription_id}",
	)
	styles = getSampleStyleSheet()
	title_style = ParagraphStyle("RxTitle", parent=styles["Heading1"], fontSize=20, alignment=1, spaceAfter=12)
	body_style = ParagraphStyle("RxBody", parent=styles["Normal"], fontSize=11, leading=15)

	doctor = prescription.doctor
	issued = prescription.date_issued.strftime("%B %d, %Y") if prescription.date_issued else ""
	info = [
		["Doctor:", f"Dr. {doctor.name}" if doctor else ""],
		["Specialty:", doctor.specialty if doctor else ""],
		["Clinic:", doctor.clinic_location if doctor else ""],
		["Patient:", prescription.patient.name if prescription.patient else ""],
		["Date:", issued],
	]
	table = Table(info, colWidths=[1.3 * inch, 4.7 * inch])
	table.setStyle(TableStyle([
		("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
		("FONT", (1, 0), (1, -1), "Helvetica", 10),
		("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
		("BOTTOMPADDING", (0, 0), (-1, -1), 6),
	]))

	story = [
		Paragraph("CareXpert Prescription", title_style),
		table,
		Spacer(1, 0.3 * inch),
		Paragraph("<b>Rx</b>", styles["Heading2"]),
	]
	for line in prescription.prescription_text.splitlines() or [""]:
		story.append(Paragraph(escape(line) or "&nbsp;", body_style))
	doc.build(story)
	log.info("rendered prescription pdf id=%s", prescription.prescription_id)
	return buffer.getvalue()
