from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Any, Literal
from datetime import date as dt_date, datetime, timezone
from carexpert.models import Role, SlotStatus, AppointmentStatus, AppointmentType, MessageType, ReportStatus


def as_utc(value: datetime | None) -> datetime | None:
	# Timestamps are stored as naive UTC.
	if value is not None and value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


class SignupIn(BaseModel):
	first_name: str = ""
	last_name: str = ""
	email: EmailStr
	password: str
	role: Literal["PATIENT", "DOCTOR"] = "PATIENT"
	specialty: Optional[str] = None
	clinic_location: Optional[str] = None

class AdminSignupIn(BaseModel):
	first_name: str = ""
	last_name: str = ""
	email: EmailStr
	password: str

class LoginIn(BaseModel):
	data: str = Field(description="Email or user name")
	password: str

class UserOut(BaseModel):
	user_id: int
	name: str
	email: EmailStr
	role: Role
	profile_picture: Optional[str] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class TokenOut(BaseModel):
	user: UserOut
	access_token: str
	refresh_token: str

class DoctorOut(BaseModel):
	doctor_id: int
	user_id: int
	name: Optional[str] = None
	specialty: str
	clinic_location: str
	experience: Optional[str] = None
	education: Optional[str] = None
	bio: Optional[str] = None
	languages: Optional[List[str]] = None

	class Config:
		from_attributes = True

class PatientOut(BaseModel):
	patient_id: int
	user_id: int
	name: Optional[str] = None
	medical_history: Optional[str] = None

	class Config:
		from_attributes = True

class ProfileOut(UserOut):
	doctor: Optional[DoctorOut] = None
	patient: Optional[PatientOut] = None

class PatientProfileIn(BaseModel):
	name: Optional[str] = None
	profile_picture: Optional[str] = None
	medical_history: Optional[str] = None

class DoctorProfileIn(BaseModel):
	name: Optional[str] = None
	profile_picture: Optional[str] = None
	specialty: Optional[str] = None
	clinic_location: Optional[str] = None
	experience: Optional[str] = None
	education: Optional[str] = None
	bio: Optional[str] = None
	languages: Optional[List[str]] = None

class TimeSlotIn(BaseModel):
	start_time: datetime
	end_time: datetime
	consultation_fee: Optional[float] = Field(default=None, ge=0)

class TimeSlotUpdate(BaseModel):
	start_time: Optional[datetime] = None
	end_time: Optional[datetime] = None
	consultation_fee: Optional[float] = Field(default=None, ge=0)

class TimeSlotOut(BaseModel):
	slot_id: int
	doctor_id: int
	start_time: datetime
	end_time: datetime
	status: SlotStatus
	consultation_fee: Optional[float] = None

	@field_validator("start_time", "end_time")
	@classmethod
	def normalize_utc(cls, value):
		return as_utc(value)

	class Config:
		from_attributes = True

class DoctorListingOut(DoctorOut):
	next_available: Optional[TimeSlotOut] = None

class BookingIn(BaseModel):
	time_slot_id: int

class DirectBookingIn(BaseModel):
	doctor_id: Optional[int] = None
	date: Optional[str] = None
	time: Optional[str] = None
	appointment_type: Optional[str] = None
	notes: Optional[str] = None

class AppointmentOut(BaseModel):
	appointment_id: int
	patient_id: int
	doctor_id: int
	time_slot_id: Optional[int] = None
	status: AppointmentStatus
	appointment_type: AppointmentType
	date: dt_date
	time: str
	notes: Optional[str] = None
	consultation_fee: Optional[float] = None
	prescription_id: Optional[int] = None
	start_time: Optional[datetime] = None
	end_time: Optional[datetime] = None
	doctor_name: Optional[str] = None
	patient_name: Optional[str] = None
	created_at: Optional[datetime] = None

	@field_validator("start_time", "end_time")
	@classmethod
	def normalize_utc(cls, value):
		return as_utc(value)

	class Config:
		from_attributes = True

class RespondIn(BaseModel):
	action: Literal["accept", "reject"]
	rejection_reason: Optional[str] = None
	alternative_slots: List[str] = Field(default_factory=list)

class StatusUpdateIn(BaseModel):
	status: Literal["COMPLETED", "CANCELLED"]
	notes: Optional[str] = None
	prescription_text: Optional[str] = None

class PrescriptionIn(BaseModel):
	prescription_text: str
	notes: Optional[str] = None

class PrescriptionOut(BaseModel):
	prescription_id: int
	doctor_id: int
	patient_id: int
	prescription_text: str
	date_issued: Optional[datetime] = None

	class Config:
		from_attributes = True

class PatientHistoryOut(BaseModel):
	history_id: int
	patient_id: int
	doctor_id: int
	prescription_id: Optional[int] = None
	appointment_id: Optional[int] = None
	notes: Optional[str] = None
	date_recorded: Optional[datetime] = None
	prescription: Optional[PrescriptionOut] = None

	class Config:
		from_attributes = True

class NotificationOut(BaseModel):
	notification_id: int
	type: str
	title: str
	message: str
	is_read: bool
	appointment_id: Optional[int] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class RoomMemberOut(BaseModel):
	user_id: int
	name: str
	role: Role
	profile_picture: Optional[str] = None

	class Config:
		from_attributes = True

class RoomIn(BaseModel):
	room_name: str

class RoomOut(BaseModel):
	room_id: int
	name: str
	members: List[RoomMemberOut] = []
	admins: List[RoomMemberOut] = []

	class Config:
		from_attributes = True

class ChatMessageOut(BaseModel):
	message_id: int
	sender_id: int
	receiver_id: Optional[int] = None
	room_id: Optional[int] = None
	conversation_id: Optional[int] = None
	message: str
	message_type: MessageType
	image_url: Optional[str] = None
	timestamp: Optional[datetime] = None

	class Config:
		from_attributes = True

class Pagination(BaseModel):
	page: int
	limit: int
	total: int
	pages: int

class MessagePage(BaseModel):
	messages: List[ChatMessageOut]
	pagination: Pagination

class ConversationOut(BaseModel):
	conversation_id: int
	other_user: RoomMemberOut
	last_message: Optional[ChatMessageOut] = None

class SymptomsIn(BaseModel):
	symptoms: str
	language: str = "en"

class SymptomAnalysis(BaseModel):
	probable_causes: List[str]
	severity: str
	recommendation: str
	disclaimer: str

class AiChatOut(BaseModel):
	chat_id: int
	user_message: str
	ai_response: Optional[Any] = None
	probable_causes: Optional[List[str]] = None
	severity: Optional[str] = None
	recommendation: Optional[str] = None
	disclaimer: Optional[str] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class AiChatPage(BaseModel):
	chats: List[AiChatOut]
	pagination: Pagination

class ReportAccepted(BaseModel):
	report_id: int
	status: ReportStatus
	message: str = "Report is being processed"

class ReportOut(BaseModel):
	report_id: int
	patient_id: int
	filename: str
	mime_type: Optional[str] = None
	file_size: Optional[int] = None
	status: ReportStatus
	attempts: int
	extracted_text: Optional[str] = None
	summary: Optional[str] = None
	abnormal_values: Optional[List[Any]] = None
	possible_conditions: Optional[List[str]] = None
	recommendation: Optional[str] = None
	disclaimer: Optional[str] = None
	error: Optional[str] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True
