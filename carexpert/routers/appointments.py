from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from carexpert.db import get_db
from carexpert import models
from carexpert.deps import get_current_user, current_doctor, current_patient
from carexpert.schemas import AppointmentOut, DirectBookingIn, StatusUpdateIn
from carexpert.services import scheduling, appointments

router = APIRouter(prefix="/api/appointments", tags=["appointments"])

@router.post("/direct", response_model=AppointmentOut, status_code=201)

def book_direct(payload: DirectBookingIn, patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	return scheduling.book_direct_appointment(
		db, patient, payload.doctor_id, payload.date, payload.time, payload.appointment_type, payload.notes,
	)

@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_appointment(appointment_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return appointments.get_appointment_for(db, user, appointment_id)

@router.patch("/{appointment_id}/cancel", response_model=AppointmentOut)

def cancel(appointment_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	# patient or doctor of the appointment
	return scheduling.cancel_appointment(db, user, appointment_id)

@router.patch("/{appointment_id}/status", response_model=AppointmentOut)

def update_status(appointment_id: int, payload: StatusUpdateIn, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return scheduling.update_appointment_status(
		db, doctor, appointment_id, payload.status, payload.notes, payload.prescription_text,
	)
