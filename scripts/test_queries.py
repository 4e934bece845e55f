from datetime import datetime, timedelta
from carexpert.models import AppointmentStatus
from carexpert.services import appointments, scheduling

NOW = datetime(2030, 6, 1, 12, 0)


def test_search_doctors_is_case_insensitive_substring(db, make_doctor):
	a = make_doctor()
	b = make_doctor("Arun", "Shah", "Dermatology", "Navi Mumbai")
	assert [d.doctor_id for d in appointments.search_doctors(db, specialty="CARDIO")] == [a.doctor_id]
	assert [d.doctor_id for d in appointments.search_doctors(db, location="mumbai")] == [b.doctor_id]
	assert appointments.search_doctors(db, specialty="derm", location="pune") == []
	assert len(appointments.search_doctors(db)) == 2


def test_next_available_slot_skips_past_and_booked(db, make_doctor, make_patient):
	doc = make_doctor()
	idle = make_doctor("Arun", "Shah", "Dermatology", "Mumbai")
	pat = make_patient()
	scheduling.create_time_slot(db, doc.doctor_id, NOW - timedelta(hours=2), NOW - timedelta(hours=1))
	booked = scheduling.create_time_slot(db, doc.doctor_id, NOW + timedelta(hours=1), NOW + timedelta(hours=2))
	later = scheduling.create_time_slot(db, doc.doctor_id, NOW + timedelta(hours=3), NOW + timedelta(hours=4))
	scheduling.book_appointment(db, pat, booked.slot_id)
	listing = dict((d.doctor_id, s) for d, s in appointments.doctors_with_next_slot(db, now=NOW))
	assert listing[doc.doctor_id].slot_id == later.slot_id
	assert listing[idle.doctor_id] is None


def test_patient_upcoming_and_past(db, make_doctor, make_patient):
	doc = make_doctor()
	pat = make_patient()
	past_slot = scheduling.create_time_slot(db, doc.doctor_id, NOW - timedelta(days=1), NOW - timedelta(days=1) + timedelta(minutes=30))
	future_slot = scheduling.create_time_slot(db, doc.doctor_id, NOW + timedelta(days=1), NOW + timedelta(days=1) + timedelta(minutes=30))
	old = scheduling.book_appointment(db, pat, past_slot.slot_id)
	new = scheduling.book_appointment(db, pat, future_slot.slot_id)
	direct = scheduling.book_direct_appointment(db, pat, doc.doctor_id, "2030-06-10", "10:00")

	ids = lambda rows: [a.appointment_id for a in rows]
	assert ids(appointments.patient_appointments(db, pat.patient_id, "upcoming", now=NOW)) == [new.appointment_id, direct.appointment_id]
	assert ids(appointments.patient_appointments(db, pat.patient_id, "past", now=NOW)) == [old.appointment_id]
	assert len(appointments.patient_appointments(db, pat.patient_id)) == 3
	assert ids(appointments.patient_slot_appointments(db, pat.patient_id)) == [old.appointment_id, new.appointment_id]


def test_doctor_filters_and_pending_order(db, make_doctor, make_patient):
	doc = make_doctor()
	p1 = make_patient()
	p2 = make_patient("Sara", "Ali")
	first = scheduling.book_direct_appointment(db, p1, doc.doctor_id, "2030-06-10", "10:00")
	second = scheduling.book_direct_appointment(db, p2, doc.doctor_id, "2030-06-09", "10:00")
	scheduling.respond_to_request(db, doc, second.appointment_id, "accept")
	third = scheduling.book_direct_appointment(db, p2, doc.doctor_id, "2030-06-11", "10:00")

	assert [a.appointment_id for a in appointments.pending_requests(db, doc.doctor_id)] == [first.appointment_id, third.appointment_id]
	confirmed = appointments.doctor_appointments(db, doc.doctor_id, AppointmentStatus.CONFIRMED)
	assert [a.appointment_id for a in confirmed] == [second.appointment_id]
	assert len(appointments.doctor_appointments(db, doc.doctor_id, upcoming=True, now=NOW)) == 3
	assert appointments.doctor_appointments(db, doc.doctor_id, upcoming=True, now=datetime(2031, 1, 1)) == []
