from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from carexpert.db import get_db
from carexpert import models
from carexpert.deps import current_doctor
from carexpert.schemas import (
	TimeSlotIn, TimeSlotUpdate, TimeSlotOut, AppointmentOut, RespondIn, PrescriptionIn, PrescriptionOut,
	PatientHistoryOut,
)
from carexpert.services import scheduling, appointments

router = APIRouter(prefix="/api/doctor", tags=["doctor"])


@router.post("/time-slots", response_model=TimeSlotOut, status_code=201)

def create_time_slot(payload: TimeSlotIn, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return scheduling.create_time_slot(db, doctor.doctor_id, payload.start_time, payload.end_time, payload.consultation_fee)

@router.get("/time-slots", response_model=List[TimeSlotOut])
def my_time_slots(
	status: Optional[models.SlotStatus] = Query(None),
	start_from: Optional[datetime] = Query(None),
	end_before: Optional[datetime] = Query(None),
	doctor: models.Doctor = Depends(current_doctor),
	db: Session = Depends(get_db),
):
	return scheduling.list_doctor_slots(db, doctor.doctor_id, status, start_from, end_before)

@router.patch("/time-slots/{slot_id}", response_model=TimeSlotOut)
def update_time_slot(slot_id: int, payload: TimeSlotUpdate, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return scheduling.update_time_slot(db, doctor.doctor_id, slot_id, payload.start_time, payload.end_time, payload.consultation_fee)

@router.delete("/time-slots/{slot_id}")
def delete_time_slot(slot_id: int, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	scheduling.delete_time_slot(db, doctor.doctor_id, slot_id)
	return {"message": "Time slot deleted successfully"}


@router.get("/appointments", response_model=List[AppointmentOut])
def my_appointments(
	status: Optional[models.AppointmentStatus] = Query(None),
	upcoming: bool = Query(False),
	doctor: models.Doctor = Depends(current_doctor),
	db: Session = Depends(get_db),
):
	return appointments.doctor_appointments(db, doctor.doctor_id, status, upcoming)

@router.get("/pending-requests", response_model=List[AppointmentOut])
def pending_requests(doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return appointments.pending_requests(db, doctor.doctor_id)

@router.patch("/appointments/{appointment_id}/respond", response_model=AppointmentOut)

def respond(appointment_id: int, payload: RespondIn, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return scheduling.respond_to_request(
		db, doctor, appointment_id, payload.action, payload.rejection_reason, payload.alternative_slots,
	)

@router.post("/appointments/{appointment_id}/prescription", response_model=PrescriptionOut, status_code=201)

def add_prescription(appointment_id: int, payload: PrescriptionIn, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return scheduling.add_prescription(db, doctor, appointment_id, payload.prescription_text, payload.notes)

@router.get("/patients/{patient_id}/history", response_model=List[PatientHistoryOut])
def patient_history(patient_id: int, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return appointments.patient_history(db, patient_id)
