from fastapi import APIRouter, Depends, Response, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from carexpert.db import get_db
from carexpert import models
from carexpert.config import settings
from carexpert.deps import get_current_user, current_doctor, current_patient
from carexpert.schemas import (
	SignupIn, AdminSignupIn, LoginIn, UserOut, TokenOut, ProfileOut, DoctorOut, PatientOut,
	PatientProfileIn, DoctorProfileIn, NotificationOut, RoomMemberOut, RoomOut,
)
from carexpert.services import accounts, notifications

router = APIRouter(prefix="/api/user", tags=["user"])


def _set_auth_cookies(response: Response, access: str, refresh: str) -> None:
	secure = settings.app_env == "production"
	response.set_cookie("accessToken", access, httponly=True, secure=secure, samesite="lax",
						max_age=settings.access_token_expires_minutes * 60)
	response.set_cookie("refreshToken", refresh, httponly=True, secure=secure, samesite="lax",
						max_age=settings.refresh_token_expires_minutes * 60)


@router.post("/signup", response_model=UserOut, status_code=201)

def signup(payload: SignupIn, db: Session = Depends(get_db)):
	return accounts.signup(db, **payload.model_dump())

@router.post("/admin-signup", response_model=UserOut, status_code=201)

def admin_signup(payload: AdminSignupIn, db: Session = Depends(get_db)):
	return accounts.admin_signup(db, **payload.model_dump())

@router.post("/login", response_model=TokenOut)

def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
	user, access, refresh = accounts.login(db, payload.data, payload.password)
	_set_auth_cookies(response, access, refresh)
	return {"user": user, "access_token": access, "refresh_token": refresh}

@router.post("/logout")

def logout(response: Response, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	accounts.logout(db, user)
	response.delete_cookie("accessToken")
	response.delete_cookie("refreshToken")
	return {"message": "Logged out successfully"}

@router.get("/profile", response_model=ProfileOut)
def my_profile(user: models.User = Depends(get_current_user)):
	return user

@router.get("/doctor/{doctor_id}", response_model=DoctorOut)
def doctor_profile(doctor_id: int, db: Session = Depends(get_db)):
	return accounts.get_doctor_profile(db, doctor_id)

@router.get("/patient/{patient_id}", response_model=PatientOut)
def patient_profile(patient_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return accounts.get_patient_profile(db, patient_id)

@router.put("/patient/profile", response_model=ProfileOut)
def update_patient(payload: PatientProfileIn, patient: models.Patient = Depends(current_patient), db: Session = Depends(get_db)):
	return accounts.update_patient_profile(db, patient.user, **payload.model_dump())

@router.put("/doctor/profile", response_model=ProfileOut)
def update_doctor(payload: DoctorProfileIn, doctor: models.Doctor = Depends(current_doctor), db: Session = Depends(get_db)):
	return accounts.update_doctor_profile(db, doctor.user, **payload.model_dump())


# notifications

@router.get("/notifications", response_model=List[NotificationOut])
def list_notifications(is_read: Optional[bool] = Query(None), user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return notifications.list_notifications(db, user.user_id, is_read)

@router.get("/notifications/unread-count")
def unread_count(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return {"unread_count": notifications.unread_count(db, user.user_id)}

@router.patch("/notifications/read-all")
def mark_all_read(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return {"updated": notifications.mark_all_read(db, user.user_id)}

@router.patch("/notifications/{notification_id}/read")
def mark_read(notification_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	notifications.mark_read(db, user.user_id, notification_id)
	return {"message": "Notification marked as read"}


# communities

@router.get("/communities/{room_id}/members", response_model=List[RoomMemberOut])
def room_members(room_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return accounts.room_members(db, room_id)

@router.post("/communities/{room_id}/join", response_model=RoomOut)
def join_room(room_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return accounts.join_room(db, user, room_id)

@router.post("/communities/{room_id}/leave", response_model=RoomOut)
def leave_room(room_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return accounts.leave_room(db, user, room_id)
