from fastapi import Depends, Request
from sqlalchemy.orm import Session
from carexpert.db import get_db
from carexpert import models
from carexpert.errors import Unauthorized, Forbidden, NotFound
from carexpert.security import decode_access_token


def token_from_request(request: Request) -> str | None:
	token = request.cookies.get("accessToken")
	if token:
		return token
	header = request.headers.get("Authorization", "")
	if header.startswith("Bearer "):
		return header[len("Bearer "):].strip()
	return None


def user_from_token(db: Session, token: str | None) -> models.User:
	if not token:
		raise Unauthorized("Unauthorized request")
	payload = decode_access_token(token)
	if not payload or not str(payload.get("sub", "")).isdigit():
		raise Unauthorized("Invalid token")
	user = db.query(models.User).filter(models.User.user_id == int(payload["sub"])).first()
	if not user:
		raise NotFound("User not found")
	return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> models.User:
	return user_from_token(db, token_from_request(request))


def require_role(*roles: models.Role):
	def checker(user: models.User = Depends(get_current_user)) -> models.User:
		if user.role not in roles:
			raise Forbidden(f"Only {' or '.join(r.value.lower() for r in roles)} users can access this resource")
		return user
	return checker


def current_doctor(user: models.User = Depends(require_role(models.Role.DOCTOR))) -> models.Doctor:
	if not user.doctor:
		raise NotFound("No doctor found!")
	return user.doctor


def current_patient(user: models.User = Depends(require_role(models.Role.PATIENT))) -> models.Patient:
	if not user.patient:
		raise NotFound("Patient profile not found")
	return user.patient
