from datetime import datetime
from sqlalchemy import or_, and_
from sqlalchemy.orm import Session
from carexpert import models
from carexpert.models import SlotStatus, AppointmentStatus
from carexpert.errors import ValidationError, NotFound, Forbidden


def _with_slot(db: Session):
	return db.query(models.Appointment).outerjoin(
		models.TimeSlot, models.Appointment.time_slot_id == models.TimeSlot.slot_id
	)


def _upcoming_clause(now: datetime):
	# slot-less appointments fall back to their calendar date
	return or_(
		and_(models.Appointment.time_slot_id.isnot(None), models.TimeSlot.start_time >= now),
		and_(models.Appointment.time_slot_id.is_(None), models.Appointment.date >= now.date()),
	)


def _past_clause(now: datetime):
	return or_(
		and_(models.Appointment.time_slot_id.isnot(None), models.TimeSlot.start_time < now),
		and_(models.Appointment.time_slot_id.is_(None), models.Appointment.date < now.date()),
	)


def patient_appointments(db: Session, patient_id: int, when: str = "all", now: datetime | None = None) -> list[models.Appointment]:
	now = now or datetime.utcnow()
	q = _with_slot(db).filter(models.Appointment.patient_id == patient_id)
	if when == "upcoming":
		q = q.filter(_upcoming_clause(now))
	elif when == "past":
		q = q.filter(_past_clause(now))
	elif when != "all":
		raise ValidationError("Filter must be all, upcoming or past")
	return q.order_by(models.Appointment.date.asc(), models.Appointment.time.asc()).all()


def patient_slot_appointments(db: Session, patient_id: int) -> list[models.Appointment]:
	return db.query(models.Appointment).join(
		models.TimeSlot, models.Appointment.time_slot_id == models.TimeSlot.slot_id
	).filter(
		models.Appointment.patient_id == patient_id,
	).order_by(models.TimeSlot.start_time.asc()).all()


def doctor_appointments(
	db: Session,
	doctor_id: int,
	status: AppointmentStatus | None = None,
	upcoming: bool = False,
	now: datetime | None = None,
) -> list[models.Appointment]:
	q = _with_slot(db).filter(models.Appointment.doctor_id == doctor_id)
	if status is not None:
		q = q.filter(models.Appointment.status == status)
	if upcoming:
		q = q.filter(_upcoming_clause(now or datetime.utcnow()))
	return q.order_by(models.Appointment.date.asc(), models.Appointment.time.asc()).all()


def pending_requests(db: Session, doctor_id: int) -> list[models.Appointment]:
	return db.query(models.Appointment).filter(
		models.Appointment.doctor_id == doctor_id,
		models.Appointment.status == AppointmentStatus.PENDING,
	).order_by(models.Appointment.created_at.asc(), models.Appointment.appointment_id.asc()).all()


def patient_history(db: Session, patient_id: int) -> list[models.PatientHistory]:
	return db.query(models.PatientHistory).filter(
		models.PatientHistory.patient_id == patient_id
	).order_by(models.PatientHistory.date_recorded.desc(), models.PatientHistory.history_id.desc()).all()


def search_doctors(db: Session, specialty: str | None = None, location: str | None = None) -> list[models.Doctor]:
	q = db.query(models.Doctor)
	if specialty:
		q = q.filter(models.Doctor.specialty.ilike(f"%{specialty}%"))
	if location:
		q = q.filter(models.Doctor.clinic_location.ilike(f"%{location}%"))
	return q.order_by(models.Doctor.doctor_id.asc()).all()


def doctors_with_next_slot(db: Session, now: datetime | None = None) -> list[tuple[models.Doctor, models.TimeSlot | None]]:
	now = now or datetime.utcnow()
	out = []
	for doctor in db.query(models.Doctor).order_by(models.Doctor.doctor_id.asc()).all():
		next_slot = db.query(models.TimeSlot).filter(
			models.TimeSlot.doctor_id == doctor.doctor_id,
			models.TimeSlot.status == SlotStatus.AVAILABLE,
			models.TimeSlot.start_time >= now,
		).order_by(models.TimeSlot.start_time.asc()).first()
		out.append((doctor, next_slot))
	return out


def get_appointment_for(db: Session, user: models.User, appointment_id: int) -> models.Appointment:
	appt = db.query(models.Appointment).filter(models.Appointment.appointment_id == appointment_id).first()
	if not appt:
		raise NotFound("Appointment not found")
	if user.role == models.Role.ADMIN:
		return appt
	if user.patient and user.patient.patient_id == appt.patient_id:
		return appt
	if user.doctor and user.doctor.doctor_id == appt.doctor_id:
		return appt
	raise Forbidden("You are not a party to this appointment")
