from carexpert.db import SessionLocal, Base, engine
from carexpert import models
from carexpert.services import accounts, scheduling
from carexpert.errors import Conflict
from datetime import timedelta, datetime
import csv

Base.metadata.create_all(bind=engine)

DEFAULT_PASSWORD = "password123"

def upsert_doctor(db, first: str, last: str, specialty: str, city: str):
	email = f"{first}.{last}@carexpert.test".lower()
	u = db.query(models.User).filter(models.User.email == email).first()
	if not u:
		u = accounts.signup(db, first, last, email, DEFAULT_PASSWORD, "DOCTOR", specialty, city)
	return u.doctor

def upsert_patient(db, first: str, last: str, email: str):
	u = db.query(models.User).filter(models.User.email == email.lower()).first()
	if not u:
		u = accounts.signup(db, first, last, email, DEFAULT_PASSWORD, "PATIENT")
	return u.patient

def seed():
	db = SessionLocal()
	doctors = [
		upsert_doctor(db, "Asha", "Ahuja", "General Physician", "Mumbai"),
		upsert_doctor(db, "Rohan", "Mehra", "Pediatrics", "Delhi"),
	]
	# patients from CSV if present
	try:
		with open('patients.csv', newline='', encoding='utf-8') as f:
			for row in csv.DictReader(f):
				first, _, last = row['name'].partition(' ')
				upsert_patient(db, first, last, row['email'])
	except FileNotFoundError:
		for i in range(1, 11):
			upsert_patient(db, "Patient", str(i), f"patient{i}@example.com")
	# half-hour slots over the next five days
	start = datetime.utcnow().date() + timedelta(days=1)
	for d in doctors:
		if db.query(models.TimeSlot).filter(models.TimeSlot.doctor_id == d.doctor_id).count():
			continue
		for day in range(0, 5):
			for hh in (9, 10, 11, 14, 15, 16):
				st = datetime.combine(start + timedelta(days=day), datetime.min.time()) + timedelta(hours=hh)
				try:
					scheduling.create_time_slot(db, d.doctor_id, st, st + timedelta(minutes=30), 500.0)
				except Conflict:
					continue
	db.close()

if __name__ == "__main__":
	seed()
	print("Seeded sample data.")
