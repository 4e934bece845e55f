from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from carexpert import models
from carexpert.config import settings
from carexpert.errors import ValidationError, Unauthorized, NotFound, Conflict
from carexpert.security import hash_password, verify_password, create_access_token, create_refresh_token
from carexpert.logger import get_logger

log = get_logger("accounts")


def get_or_create_room(db: Session, name: str) -> models.Room:
	"""Find a room by name, adding it to the session when missing."""
	room = db.query(models.Room).filter(models.Room.name == name).first()
	if not room:
		room = models.Room(name=name)
		db.add(room)
		db.flush()
		log.info("room created name=%s", name)
	return room


def _full_name(first_name: str, last_name: str) -> str:
	return f"{(first_name or '').strip()} {(last_name or '').strip()}".strip().lower()


def _ensure_unique(db: Session, name: str, email: str) -> None:
	existing = db.query(models.User).filter(
		or_(func.lower(models.User.name) == name, func.lower(models.User.email) == email.lower())
	).first()
	if existing:
		if existing.name.lower() == name:
			raise Conflict("Username already taken")
		raise Conflict("User with this email already exists")


def signup(
	db: Session,
	first_name: str,
	last_name: str,
	email: str,
	password: str,
	role: str = "PATIENT",
	specialty: str | None = None,
	clinic_location: str | None = None,
) -> models.User:
	name = _full_name(first_name, last_name)
	if not name or not email or not password:
		raise ValidationError("All fields are required")
	if role not in (models.Role.PATIENT.value, models.Role.DOCTOR.value):
		raise ValidationError("Role must be PATIENT or DOCTOR")
	if role == models.Role.DOCTOR.value and (not (specialty or "").strip() or not (clinic_location or "").strip()):
		raise ValidationError("Specialty and clinic location are required for doctors")
	_ensure_unique(db, name, email)
	try:
		user = models.User(
			name=name,
			email=email.lower(),
			password_hash=hash_password(password),
			role=models.Role(role),
			profile_picture=settings.default_profile_picture,
		)
		db.add(user)
		db.flush()
		if user.role == models.Role.DOCTOR:
			city = clinic_location.strip()
			db.add(models.Doctor(user_id=user.user_id, specialty=specialty.strip(), clinic_location=city, languages=[]))
			room = get_or_create_room(db, city)
			room.members.append(user)
		else:
			db.add(models.Patient(user_id=user.user_id, medical_history=""))
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(user)
	log.info("signup user=%s role=%s", user.user_id, user.role.value)
	return user


def admin_signup(db: Session, first_name: str, last_name: str, email: str, password: str) -> models.User:
	name = _full_name(first_name, last_name)
	if not name or not email or not password:
		raise ValidationError("All fields are required")
	_ensure_unique(db, name, email)
	user = models.User(
		name=name,
		email=email.lower(),
		password_hash=hash_password(password),
		role=models.Role.ADMIN,
		profile_picture=settings.default_profile_picture,
	)
	db.add(user)
	db.commit()
	db.refresh(user)
	log.info("admin signup user=%s", user.user_id)
	return user


def login(db: Session, data: str, password: str) -> tuple[models.User, str, str]:
	"""Match ``data`` against email or name and issue an access/refresh pair."""
	if not data or not password:
		raise ValidationError("Email/username and password are required")
	ident = data.strip().lower()
	user = db.query(models.User).filter(
		or_(func.lower(models.User.email) == ident, func.lower(models.User.name) == ident)
	).first()
	if not user or not verify_password(password, user.password_hash):
		raise Unauthorized("Invalid credentials")
	access = create_access_token(user.user_id)
	refresh = create_refresh_token(user.user_id)
	user.refresh_token = refresh
	db.commit()
	db.refresh(user)
	return user, access, refresh


def logout(db: Session, user: models.User) -> None:
	user.refresh_token = None
	db.commit()


def get_doctor_profile(db: Session, doctor_id: int) -> models.Doctor:
	doctor = db.query(models.Doctor).filter(models.Doctor.doctor_id == doctor_id).first()
	if not doctor:
		raise NotFound("Doctor not found")
	return doctor


def get_patient_profile(db: Session, patient_id: int) -> models.Patient:
	patient = db.query(models.Patient).filter(models.Patient.patient_id == patient_id).first()
	if not patient:
		raise NotFound("Patient not found")
	return patient


def _rename(db: Session, user: models.User, name: str | None) -> None:
	if name is None:
		return
	name = name.strip().lower()
	if not name:
		raise ValidationError("Name cannot be empty")
	if name != user.name:
		taken = db.query(models.User).filter(
			func.lower(models.User.name) == name, models.User.user_id != user.user_id
		).first()
		if taken:
			raise Conflict("Username already taken")
		user.name = name


def update_patient_profile(db: Session, user: models.User, name=None, profile_picture=None, medical_history=None) -> models.User:
	if not user.patient:
		raise NotFound("Patient profile not found")
	_rename(db, user, name)
	if profile_picture is not None:
		user.profile_picture = profile_picture
	if medical_history is not None:
		user.patient.medical_history = medical_history
	db.commit()
	db.refresh(user)
	return user


def update_doctor_profile(db: Session, user: models.User, **fields) -> models.User:
	doctor = user.doctor
	if not doctor:
		raise NotFound("No doctor found!")
	_rename(db, user, fields.pop("name", None))
	picture = fields.pop("profile_picture", None)
	if picture is not None:
		user.profile_picture = picture
	for key in ("specialty", "clinic_location", "experience", "education", "bio", "languages"):
		value = fields.get(key)
		if value is not None:
			setattr(doctor, key, value)
	db.commit()
	db.refresh(user)
	return user


# ---- communities ----

def _room_by_id(db: Session, room_id: int) -> models.Room:
	room = db.query(models.Room).filter(models.Room.room_id == room_id).first()
	if not room:
		raise NotFound("Room not found")
	return room


def room_members(db: Session, room_id: int) -> list[models.User]:
	return list(_room_by_id(db, room_id).members)


def join_room(db: Session, user: models.User, room_id: int) -> models.Room:
	room = _room_by_id(db, room_id)
	if user in room.members:
		raise Conflict("Already a member of this room")
	room.members.append(user)
	db.commit()
	db.refresh(room)
	return room


def leave_room(db: Session, user: models.User, room_id: int) -> models.Room:
	room = _room_by_id(db, room_id)
	if user not in room.members:
		raise NotFound("Not a member of this room")
	room.members.remove(user)
	if user in room.admins:
		room.admins.remove(user)
	db.commit()
	db.refresh(room)
	return room
