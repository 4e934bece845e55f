"""Time-slot management and the appointment state machine.

Every function takes the request's ``Session`` and owns its commit. Writes
that race with other requests (claiming a slot, moving an appointment between
statuses) are conditional updates on the expected prior value, so a losing
request fails with ``Conflict`` instead of silently overwriting.
"""

import re
from datetime import datetime, date as dt_date, time as dt_time, timedelta, timezone
from sqlalchemy.orm import Session
from carexpert import models
from carexpert.models import SlotStatus, AppointmentStatus, AppointmentType
from carexpert.errors import ValidationError, NotFound, Conflict, InvalidTransition
from carexpert.services import notifications
from carexpert.logger import get_logger

log = get_logger("scheduling")

MAX_SLOT_DURATION = timedelta(hours=3)
PRESCRIPTION_MIN_LENGTH = 3
TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

# statuses that hold a patient's time
ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)

TRANSITIONS = {
	AppointmentStatus.PENDING: {
		AppointmentStatus.CONFIRMED,
		AppointmentStatus.REJECTED,
		AppointmentStatus.CANCELLED,
		AppointmentStatus.COMPLETED,
	},
	AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
}


def to_utc_naive(value: datetime) -> datetime:
	if value.tzinfo is not None:
		value = value.astimezone(timezone.utc).replace(tzinfo=None)
	return value


def _validate_interval(start: datetime, end: datetime) -> None:
	if end <= start:
		raise ValidationError("End time must be after start time")
	if end - start > MAX_SLOT_DURATION:
		raise ValidationError("Time slot must be between 0 to 3 hours")


def _overlapping_slot(db: Session, doctor_id: int, start: datetime, end: datetime, exclude_id: int | None = None):
	q = db.query(models.TimeSlot).filter(
		models.TimeSlot.doctor_id == doctor_id,
		models.TimeSlot.start_time < end,
		models.TimeSlot.end_time > start,
	)
	if exclude_id is not None:
		q = q.filter(models.TimeSlot.slot_id != exclude_id)
	return q.first()


def get_doctor(db: Session, doctor_id: int, message: str = "Doctor not found!") -> models.Doctor:
	doctor = db.query(models.Doctor).filter(models.Doctor.doctor_id == doctor_id).first()
	if not doctor:
		raise NotFound(message)
	return doctor


# ---- time slots ----

def create_time_slot(db: Session, doctor_id: int, start: datetime, end: datetime, consultation_fee: float | None = None) -> models.TimeSlot:
	start, end = to_utc_naive(start), to_utc_naive(end)
	_validate_interval(start, end)
	if _overlapping_slot(db, doctor_id, start, end):
		raise Conflict("Timeslot overlaps with an existing timeslot")
	slot = models.TimeSlot(
		doctor_id=doctor_id,
		start_time=start,
		end_time=end,
		consultation_fee=consultation_fee,
		status=SlotStatus.AVAILABLE,
	)
	db.add(slot)
	db.commit()
	db.refresh(slot)
	log.info("slot created doctor=%s slot=%s %s-%s", doctor_id, slot.slot_id, start, end)
	return slot


def list_available_slots(db: Session, doctor_id: int, day: dt_date | None = None) -> list[models.TimeSlot]:
	get_doctor(db, doctor_id, "Doctor not available")
	q = db.query(models.TimeSlot).filter(
		models.TimeSlot.doctor_id == doctor_id,
		models.TimeSlot.status == SlotStatus.AVAILABLE,
	)
	if day is not None:
		day_start = datetime.combine(day, dt_time.min)
		q = q.filter(
			models.TimeSlot.start_time >= day_start,
			models.TimeSlot.start_time < day_start + timedelta(days=1),
		)
	return q.order_by(models.TimeSlot.start_time.asc()).all()


def list_doctor_slots(
	db: Session,
	doctor_id: int,
	status: SlotStatus | None = None,
	start_from: datetime | None = None,
	end_before: datetime | None = None,
) -> list[models.TimeSlot]:
	q = db.query(models.TimeSlot).filter(models.TimeSlot.doctor_id == doctor_id)
	if status is not None:
		q = q.filter(models.TimeSlot.status == status)
	if start_from is not None:
		q = q.filter(models.TimeSlot.start_time >= to_utc_naive(start_from))
	if end_before is not None:
		q = q.filter(models.TimeSlot.end_time <= to_utc_naive(end_before))
	return q.order_by(models.TimeSlot.start_time.asc()).all()


def _owned_slot(db: Session, doctor_id: int, slot_id: int) -> models.TimeSlot:
	slot = db.query(models.TimeSlot).filter(models.TimeSlot.slot_id == slot_id).first()
	if not slot or slot.doctor_id != doctor_id:
		raise NotFound("Time slot not found or unauthorized")
	return slot


def update_time_slot(
	db: Session,
	doctor_id: int,
	slot_id: int,
	start: datetime | None = None,
	end: datetime | None = None,
	consultation_fee: float | None = None,
) -> models.TimeSlot:
	slot = _owned_slot(db, doctor_id, slot_id)
	new_start = to_utc_naive(start) if start is not None else slot.start_time
	new_end = to_utc_naive(end) if end is not None else slot.end_time
	if (new_start, new_end) != (slot.start_time, slot.end_time):
		if slot.status == SlotStatus.BOOKED:
			raise Conflict("Cannot move a booked time slot")
		_validate_interval(new_start, new_end)
		if _overlapping_slot(db, doctor_id, new_start, new_end, exclude_id=slot.slot_id):
			raise Conflict("Timeslot overlaps with an existing timeslot")
		slot.start_time = new_start
		slot.end_time = new_end
	if consultation_fee is not None:
		slot.consultation_fee = consultation_fee
	db.commit()
	db.refresh(slot)
	return slot


def delete_time_slot(db: Session, doctor_id: int, slot_id: int) -> None:
	slot = _owned_slot(db, doctor_id, slot_id)
	referenced = db.query(models.Appointment).filter(models.Appointment.time_slot_id == slot.slot_id).count()
	if referenced:
		raise Conflict("Cannot delete time slot with existing appointment")
	db.delete(slot)
	db.commit()
	log.info("slot deleted doctor=%s slot=%s", doctor_id, slot_id)


# ---- booking ----

def _patient_overlap(db: Session, patient_id: int, start: datetime, end: datetime):
	return db.query(models.Appointment).join(
		models.TimeSlot, models.Appointment.time_slot_id == models.TimeSlot.slot_id
	).filter(
		models.Appointment.patient_id == patient_id,
		models.Appointment.status.in_(ACTIVE_STATUSES),
		models.TimeSlot.start_time < end,
		models.TimeSlot.end_time > start,
	).first()


def _set_slot_status(db: Session, slot_id: int | None, status: SlotStatus, expected: SlotStatus | None = None) -> int:
	if slot_id is None:
		return 0
	q = db.query(models.TimeSlot).filter(models.TimeSlot.slot_id == slot_id)
	if expected is not None:
		q = q.filter(models.TimeSlot.status == expected)
	return q.update({"status": status}, synchronize_session=False)


def book_appointment(db: Session, patient: models.Patient, time_slot_id: int) -> models.Appointment:
	try:
		slot = db.query(models.TimeSlot).filter(models.TimeSlot.slot_id == time_slot_id).first()
		if not slot:
			raise NotFound("Time slot not found")
		if slot.status != SlotStatus.AVAILABLE:
			raise Conflict("This time slot is no longer available")
		if _patient_overlap(db, patient.patient_id, slot.start_time, slot.end_time):
			raise Conflict("You already have an appointment at this time")
		# claim; zero rows means another request got there first
		claimed = _set_slot_status(db, slot.slot_id, SlotStatus.BOOKED, expected=SlotStatus.AVAILABLE)
		if claimed != 1:
			raise Conflict("This time slot is no longer available")
		appt = models.Appointment(
			patient_id=patient.patient_id,
			doctor_id=slot.doctor_id,
			time_slot_id=slot.slot_id,
			status=AppointmentStatus.PENDING,
			appointment_type=AppointmentType.OFFLINE,
			date=slot.start_time.date(),
			time=slot.start_time.strftime("%H:%M"),
			consultation_fee=slot.consultation_fee,
		)
		db.add(appt)
		db.flush()
		notifications.notify(
			db,
			slot.doctor.user,
			notifications.APPOINTMENT_REQUEST,
			"New Appointment Request",
			f"{patient.name} requested an appointment on {appt.date.isoformat()} at {appt.time}.",
			appt.appointment_id,
		)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(appt)
	log.info("booked appointment=%s patient=%s slot=%s", appt.appointment_id, patient.patient_id, time_slot_id)
	return appt


def book_direct_appointment(
	db: Session,
	patient: models.Patient,
	doctor_id: int | None,
	date_str: str | None,
	time_str: str | None,
	appointment_type: str | None = None,
	notes: str | None = None,
) -> models.Appointment:
	if not doctor_id or not date_str or not time_str:
		raise ValidationError("doctorId, date, and time are required!")
	if appointment_type and appointment_type not in AppointmentType.__members__:
		raise ValidationError("appointmentType must be 'ONLINE' or 'OFFLINE'!")
	try:
		day = datetime.strptime(date_str, "%Y-%m-%d").date()
	except ValueError:
		raise ValidationError("Invalid date format. Use YYYY-MM-DD!") from None
	m = TIME_RE.match(time_str)
	if not m:
		raise ValidationError("Invalid time format. Use HH:mm!")
	time_norm = f"{int(m.group(1)):02d}:{m.group(2)}"

	doctor = get_doctor(db, doctor_id)
	existing = db.query(models.Appointment).filter(
		models.Appointment.doctor_id == doctor_id,
		models.Appointment.date == day,
		models.Appointment.time == time_norm,
		models.Appointment.status.in_((AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)),
	).first()
	if existing:
		raise Conflict("An appointment already exists for this doctor at the specified date and time!")
	try:
		appt = models.Appointment(
			patient_id=patient.patient_id,
			doctor_id=doctor.doctor_id,
			status=AppointmentStatus.PENDING,
			appointment_type=AppointmentType(appointment_type) if appointment_type else AppointmentType.OFFLINE,
			date=day,
			time=time_norm,
			notes=notes,
		)
		db.add(appt)
		db.flush()
		notifications.notify(
			db,
			doctor.user,
			notifications.APPOINTMENT_REQUEST,
			"New Appointment Request",
			f"{patient.name} requested an appointment on {day.isoformat()} at {time_norm}.",
			appt.appointment_id,
		)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(appt)
	return appt


# ---- status transitions ----

def _advance(db: Session, appt: models.Appointment, target: AppointmentStatus, **values) -> None:
	current = appt.status
	if target not in TRANSITIONS.get(current, ()):
		raise InvalidTransition(f"Appointment is {current.value} and cannot become {target.value}")
	count = db.query(models.Appointment).filter(
		models.Appointment.appointment_id == appt.appointment_id,
		models.Appointment.status == current,
	).update({"status": target, **values}, synchronize_session=False)
	if count != 1:
		raise Conflict("Appointment was changed by another request, reload and try again")
	log.info("appointment=%s %s -> %s", appt.appointment_id, current.value, target.value)


def _doctor_appointment(db: Session, doctor: models.Doctor, appointment_id: int, message: str = "Appointment not found or unauthorized") -> models.Appointment:
	appt = db.query(models.Appointment).filter(models.Appointment.appointment_id == appointment_id).first()
	if not appt or appt.doctor_id != doctor.doctor_id:
		raise NotFound(message)
	return appt


def respond_to_request(
	db: Session,
	doctor: models.Doctor,
	appointment_id: int,
	action: str,
	rejection_reason: str | None = None,
	alternative_slots: list[str] | None = None,
) -> models.Appointment:
	if action not in ("accept", "reject"):
		raise ValidationError("Action must be 'accept' or 'reject'")
	appt = _doctor_appointment(db, doctor, appointment_id, "Appointment request not found!")
	if appt.status != AppointmentStatus.PENDING:
		raise InvalidTransition("This appointment request has already been processed!")
	patient_user = appt.patient.user
	try:
		if action == "accept":
			_advance(db, appt, AppointmentStatus.CONFIRMED)
			_set_slot_status(db, appt.time_slot_id, SlotStatus.BOOKED)
			notifications.notify(
				db,
				patient_user,
				notifications.APPOINTMENT_ACCEPTED,
				"Appointment Confirmed",
				f"Your appointment with Dr. {doctor.name} has been confirmed for {appt.date.isoformat()} at {appt.time}.",
				appt.appointment_id,
			)
		else:
			reason = rejection_reason or "Appointment request rejected by doctor"
			_advance(db, appt, AppointmentStatus.REJECTED, notes=reason)
			_set_slot_status(db, appt.time_slot_id, SlotStatus.AVAILABLE)
			message = f"Your appointment request with Dr. {doctor.name} has been declined."
			if rejection_reason:
				message += f" Reason: {rejection_reason}"
			if alternative_slots:
				message += f" Suggested alternative time slots: {', '.join(alternative_slots)}"
			notifications.notify(
				db,
				patient_user,
				notifications.APPOINTMENT_REJECTED,
				"Appointment Request Declined",
				message,
				appt.appointment_id,
			)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(appt)
	return appt


def cancel_appointment(db: Session, actor: models.User, appointment_id: int, notes: str | None = None) -> models.Appointment:
	"""Cancel on behalf of the owning patient or the owning doctor."""
	appt = db.query(models.Appointment).filter(models.Appointment.appointment_id == appointment_id).first()
	if not appt:
		raise NotFound("Appointment not found or Unauthorized")
	by_patient = actor.patient is not None and appt.patient_id == actor.patient.patient_id
	by_doctor = actor.doctor is not None and appt.doctor_id == actor.doctor.doctor_id
	if not (by_patient or by_doctor):
		raise NotFound("Appointment not found or Unauthorized")
	if appt.status == AppointmentStatus.CANCELLED:
		raise InvalidTransition("Appointment already Cancelled!")
	other = appt.doctor.user if by_patient else appt.patient.user
	try:
		values = {"notes": notes} if notes else {}
		_advance(db, appt, AppointmentStatus.CANCELLED, **values)
		_set_slot_status(db, appt.time_slot_id, SlotStatus.AVAILABLE)
		notifications.notify(
			db,
			other,
			notifications.APPOINTMENT_CANCELLED,
			"Appointment Cancelled",
			f"The appointment on {appt.date.isoformat()} at {appt.time} was cancelled by {actor.name}.",
			appt.appointment_id,
		)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(appt)
	return appt


def _issue_prescription(db: Session, appt: models.Appointment, text: str, notes: str | None) -> models.Prescription:
	prescription = models.Prescription(
		doctor_id=appt.doctor_id,
		patient_id=appt.patient_id,
		prescription_text=text,
	)
	db.add(prescription)
	db.flush()
	appt.prescription_id = prescription.prescription_id
	db.add(models.PatientHistory(
		patient_id=appt.patient_id,
		doctor_id=appt.doctor_id,
		prescription_id=prescription.prescription_id,
		appointment_id=appt.appointment_id,
		notes=notes or "",
	))
	return prescription


def _clean_prescription(text: str | None) -> str:
	text = (text or "").strip()
	if len(text) < PRESCRIPTION_MIN_LENGTH:
		raise ValidationError("Prescription text is required")
	return text


def complete_appointment(
	db: Session,
	doctor: models.Doctor,
	appointment_id: int,
	prescription_text: str | None = None,
	notes: str | None = None,
) -> models.Appointment:
	text = _clean_prescription(prescription_text) if prescription_text is not None else None
	appt = _doctor_appointment(db, doctor, appointment_id)
	try:
		values = {"notes": notes} if notes else {}
		_advance(db, appt, AppointmentStatus.COMPLETED, **values)
		if text:
			_issue_prescription(db, appt, text, notes)
		notifications.notify(
			db,
			appt.patient.user,
			notifications.APPOINTMENT_COMPLETED,
			"Appointment Completed",
			f"Your appointment with Dr. {doctor.name} on {appt.date.isoformat()} is marked as completed.",
			appt.appointment_id,
		)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(appt)
	return appt


def add_prescription(
	db: Session,
	doctor: models.Doctor,
	appointment_id: int,
	prescription_text: str | None,
	notes: str | None = None,
) -> models.Prescription:
	"""Attach a prescription; an open appointment is completed on the way.

	Not idempotent: every call issues a new prescription.
	"""
	text = _clean_prescription(prescription_text)
	appt = _doctor_appointment(db, doctor, appointment_id)
	if appt.status not in ACTIVE_STATUSES:
		raise InvalidTransition(f"Cannot add a prescription to a {appt.status.value} appointment")
	try:
		if appt.status != AppointmentStatus.COMPLETED:
			_advance(db, appt, AppointmentStatus.COMPLETED)
		prescription = _issue_prescription(db, appt, text, notes)
		if notes:
			appt.notes = notes
		notifications.notify(
			db,
			appt.patient.user,
			notifications.PRESCRIPTION_ADDED,
			"Prescription Available",
			"Your doctor has added a prescription for your appointment.",
			appt.appointment_id,
		)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(prescription)
	return prescription


def update_appointment_status(
	db: Session,
	doctor: models.Doctor,
	appointment_id: int,
	status: str,
	notes: str | None = None,
	prescription_text: str | None = None,
) -> models.Appointment:
	if status == AppointmentStatus.COMPLETED.value:
		return complete_appointment(db, doctor, appointment_id, prescription_text or None, notes)
	if status == AppointmentStatus.CANCELLED.value:
		return cancel_appointment(db, doctor.user, appointment_id, notes)
	raise ValidationError("Status must be Completed or Cancelled")
