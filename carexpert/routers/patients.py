from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import List, Literal, Optional
from datetime import date as dt_date
from carexpert.db import get_db
from carexpert import models
from carexpert.deps import get_current_user, current_patient
from carexpert.schemas import DoctorOut, DoctorListingOut, TimeSlotOut, BookingIn, AppointmentOut, PrescriptionOut
from carexpert.services import scheduling, appointments, prescriptions

router = APIRouter(prefix="/api/patient", tags=["patient"])


@router.get("/doctors/search", response_model=List[DoctorOut])
def search_doctors(
	specialty: Optional[str] = Query(None),
	location: Optional[str] = Query(None),
	user: models.User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	return appointments.search_doctors(db, specialty, location)

@router.get("/doctors", response_model=List[DoctorListingOut])
def all_doctors(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	out = []
	for doctor, next_slot in appointments.doctors_with_next_slot(db):
		item = DoctorListingOut.model_validate(doctor)
		item.next_available = TimeSlotOut.model_validate(next_slot) if next_slot else None
		out.append(item)
	return out

@router.get("/doctors/{doctor_id}/time-slots", response_model=List[TimeSlotOut])
def available_time_slots(
	doctor_id: int,
	date: Optional[dt_date] = Query(None),
	user: models.User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	return scheduling.list_available_slots(db, doctor_id, date)


@router.post("/appointments", response_model=AppointmentOut, status_code=201)

def book_appointment(payload: BookingIn, patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	return scheduling.book_appointment(db, patient, payload.time_slot_id)

@router.get("/appointments", response_model=List[AppointmentOut])
def my_appointments(
	when: Literal["all", "upcoming", "past"] = Query("all"),
	patient: models.Patient = Depends(current_patient),
	db: Session = Depends(get_db),
):
	return appointments.patient_appointments(db, patient.patient_id, when)

@router.get("/my-appointments", response_model=List[AppointmentOut])
def my_slot_appointments(patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	return appointments.patient_slot_appointments(db, patient.patient_id)


@router.get("/prescriptions", response_model=List[PrescriptionOut])
def my_prescriptions(patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	return prescriptions.list_prescriptions(db, patient.patient_id)

@router.get("/prescriptions/{prescription_id}/pdf")
def prescription_pdf(prescription_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	p = prescriptions.get_prescription_for(db, user, prescription_id)
	pdf = prescriptions.render_pdf(p)
	return Response(
		content=pdf,
		media_type="application/pdf",
		headers={"Content-Disposition": f"attachment; filename=prescription-{prescription_id}.pdf"},
	)
