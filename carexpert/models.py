import enum
from sqlalchemy import (
	Column, Integer, String, Date, Boolean, Text, Float, ForeignKey, DateTime, Enum, JSON, Table,
	UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from carexpert.db import Base


class Role(str, enum.Enum):
	PATIENT = "PATIENT"
	DOCTOR = "DOCTOR"
	ADMIN = "ADMIN"

class SlotStatus(str, enum.Enum):
	AVAILABLE = "AVAILABLE"
	BOOKED = "BOOKED"

class AppointmentStatus(str, enum.Enum):
	PENDING = "PENDING"
	CONFIRMED = "CONFIRMED"
	COMPLETED = "COMPLETED"
	CANCELLED = "CANCELLED"
	REJECTED = "REJECTED"

class AppointmentType(str, enum.Enum):
	ONLINE = "ONLINE"
	OFFLINE = "OFFLINE"

class MessageType(str, enum.Enum):
	TEXT = "TEXT"
	IMAGE = "IMAGE"

class ReportStatus(str, enum.Enum):
	PROCESSING = "PROCESSING"
	COMPLETED = "COMPLETED"
	FAILED = "FAILED"


room_members = Table(
	"room_members",
	Base.metadata,
	Column("room_id", Integer, ForeignKey("rooms.room_id", ondelete="CASCADE"), primary_key=True),
	Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
)

room_admins = Table(
	"room_admins",
	Base.metadata,
	Column("room_id", Integer, ForeignKey("rooms.room_id", ondelete="CASCADE"), primary_key=True),
	Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
	__tablename__ = "users"
	user_id = Column(Integer, primary_key=True)
	name = Column(String, nullable=False, unique=True)
	email = Column(String, nullable=False, unique=True)
	password_hash = Column(String, nullable=False)
	role = Column(Enum(Role, name="role"), nullable=False, default=Role.PATIENT)
	profile_picture = Column(String)
	refresh_token = Column(String)
	created_at = Column(DateTime, server_default=func.now())

	doctor = relationship("Doctor", back_populates="user", uselist=False)
	patient = relationship("Patient", back_populates="user", uselist=False)
	notifications = relationship("Notification", back_populates="user")
	rooms = relationship("Room", secondary=room_members, back_populates="members")

class Doctor(Base):
	__tablename__ = "doctors"
	doctor_id = Column(Integer, primary_key=True)
	user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, unique=True)
	specialty = Column(String, nullable=False)
	clinic_location = Column(String, nullable=False)
	experience = Column(String)
	education = Column(String)
	bio = Column(Text)
	languages = Column(JSON, default=list)

	user = relationship("User", back_populates="doctor")
	time_slots = relationship("TimeSlot", back_populates="doctor")
	appointments = relationship("Appointment", back_populates="doctor")

	@property
	def name(self):
		return self.user.name if self.user else None

class Patient(Base):
	__tablename__ = "patients"
	patient_id = Column(Integer, primary_key=True)
	user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, unique=True)
	medical_history = Column(Text)

	user = relationship("User", back_populates="patient")
	appointments = relationship("Appointment", back_populates="patient")
	reports = relationship("Report", back_populates="patient")

	@property
	def name(self):
		return self.user.name if self.user else None

class TimeSlot(Base):
	__tablename__ = "time_slots"
	__table_args__ = (CheckConstraint("end_time > start_time", name="ck_time_slot_interval"),)
	slot_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False, index=True)
	start_time = Column(DateTime, nullable=False, index=True)
	end_time = Column(DateTime, nullable=False)
	status = Column(Enum(SlotStatus, name="slot_status"), nullable=False, default=SlotStatus.AVAILABLE)
	consultation_fee = Column(Float)
	created_at = Column(DateTime, server_default=func.now())

	doctor = relationship("Doctor", back_populates="time_slots")
	appointments = relationship("Appointment", back_populates="time_slot")

class Appointment(Base):
	__tablename__ = "appointments"
	appointment_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False, index=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False, index=True)
	time_slot_id = Column(Integer, ForeignKey("time_slots.slot_id"))
	status = Column(Enum(AppointmentStatus, name="appointment_status"), nullable=False, default=AppointmentStatus.PENDING)
	appointment_type = Column(Enum(AppointmentType, name="appointment_type"), nullable=False, default=AppointmentType.OFFLINE)
	date = Column(Date, nullable=False)
	time = Column(String(5), nullable=False)
	notes = Column(Text)
	consultation_fee = Column(Float)
	prescription_id = Column(Integer, ForeignKey("prescriptions.prescription_id"))
	created_at = Column(DateTime, server_default=func.now())
	updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

	patient = relationship("Patient", back_populates="appointments")
	doctor = relationship("Doctor", back_populates="appointments")
	time_slot = relationship("TimeSlot", back_populates="appointments")
	prescription = relationship("Prescription", foreign_keys=[prescription_id])

	@property
	def start_time(self):
		return self.time_slot.start_time if self.time_slot else None

	@property
	def end_time(self):
		return self.time_slot.end_time if self.time_slot else None

	@property
	def doctor_name(self):
		return self.doctor.name if self.doctor else None

	@property
	def patient_name(self):
		return self.patient.name if self.patient else None

class Prescription(Base):
	__tablename__ = "prescriptions"
	prescription_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False, index=True)
	prescription_text = Column(Text, nullable=False)
	date_issued = Column(DateTime, server_default=func.now())

	doctor = relationship("Doctor")
	patient = relationship("Patient")

class PatientHistory(Base):
	__tablename__ = "patient_history"
	history_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False, index=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	prescription_id = Column(Integer, ForeignKey("prescriptions.prescription_id"))
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"))
	notes = Column(Text, default="")
	date_recorded = Column(DateTime, server_default=func.now())

	prescription = relationship("Prescription")
	doctor = relationship("Doctor")

class Notification(Base):
	__tablename__ = "notifications"
	notification_id = Column(Integer, primary_key=True)
	user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
	type = Column(String, nullable=False)
	title = Column(String, nullable=False)
	message = Column(Text, nullable=False)
	is_read = Column(Boolean, nullable=False, default=False)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"))
	created_at = Column(DateTime, server_default=func.now())

	user = relationship("User", back_populates="notifications")

class Room(Base):
	__tablename__ = "rooms"
	room_id = Column(Integer, primary_key=True)
	name = Column(String, nullable=False, unique=True)
	created_at = Column(DateTime, server_default=func.now())

	members = relationship("User", secondary=room_members, back_populates="rooms")
	admins = relationship("User", secondary=room_admins)

class Conversation(Base):
	__tablename__ = "conversations"
	__table_args__ = (
		UniqueConstraint("user_a_id", "user_b_id", name="uq_conversation_pair"),
		CheckConstraint("user_a_id < user_b_id", name="ck_conversation_order"),
	)
	conversation_id = Column(Integer, primary_key=True)
	user_a_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
	user_b_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
	created_at = Column(DateTime, server_default=func.now())

	user_a = relationship("User", foreign_keys=[user_a_id])
	user_b = relationship("User", foreign_keys=[user_b_id])

	def other(self, user_id: int):
		return self.user_b if user_id == self.user_a_id else self.user_a

class ChatMessage(Base):
	__tablename__ = "chat_messages"
	message_id = Column(Integer, primary_key=True)
	sender_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
	receiver_id = Column(Integer, ForeignKey("users.user_id"))
	room_id = Column(Integer, ForeignKey("rooms.room_id"), index=True)
	conversation_id = Column(Integer, ForeignKey("conversations.conversation_id"), index=True)
	message = Column(Text, nullable=False, default="")
	message_type = Column(Enum(MessageType, name="message_type"), nullable=False, default=MessageType.TEXT)
	image_url = Column(String)
	timestamp = Column(DateTime, server_default=func.now(), index=True)

	sender = relationship("User", foreign_keys=[sender_id])

class AiChat(Base):
	__tablename__ = "ai_chats"
	chat_id = Column(Integer, primary_key=True)
	user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
	user_message = Column(Text, nullable=False)
	ai_response = Column(JSON)
	probable_causes = Column(JSON, default=list)
	severity = Column(String)
	recommendation = Column(Text)
	disclaimer = Column(Text)
	created_at = Column(DateTime, server_default=func.now())

class Report(Base):
	__tablename__ = "reports"
	report_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False, index=True)
	filename = Column(String, nullable=False)
	file_path = Column(String, nullable=False)
	mime_type = Column(String)
	file_size = Column(Integer)
	status = Column(Enum(ReportStatus, name="report_status"), nullable=False, default=ReportStatus.PROCESSING)
	attempts = Column(Integer, nullable=False, default=0)
	extracted_text = Column(Text)
	summary = Column(Text)
	abnormal_values = Column(JSON)
	possible_conditions = Column(JSON)
	recommendation = Column(Text)
	disclaimer = Column(Text)
	error = Column(Text)
	created_at = Column(DateTime, server_default=func.now())
	updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

	patient = relationship("Patient", back_populates="reports")
