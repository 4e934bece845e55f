from sqlalchemy.orm import Session
from carexpert import models
from carexpert.config import settings
from carexpert.errors import NotFound
from carexpert.integrations import mailer
from carexpert.logger import get_logger

log = get_logger("notifications")

APPOINTMENT_REQUEST = "APPOINTMENT_REQUEST"
APPOINTMENT_ACCEPTED = "APPOINTMENT_ACCEPTED"
APPOINTMENT_REJECTED = "APPOINTMENT_REJECTED"
APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
APPOINTMENT_COMPLETED = "APPOINTMENT_COMPLETED"
PRESCRIPTION_ADDED = "PRESCRIPTION_ADDED"


def notify(db: Session, user: models.User, type_: str, title: str, message: str, appointment_id: int | None = None) -> models.Notification:
	"""Add a notification row to the session. The caller owns the commit."""
	n = models.Notification(
		user_id=user.user_id,
		type=type_,
		title=title,
		message=message,
		appointment_id=appointment_id,
	)
	db.add(n)
	if settings.notification_email_enabled and user.email:
		# best-effort; the row is the source of truth
		mailer.send_email(user.email, title, message)
	log.info("notify user=%s type=%s appointment=%s", user.user_id, type_, appointment_id)
	return n


def list_notifications(db: Session, user_id: int, is_read: bool | None = None) -> list[models.Notification]:
	q = db.query(models.Notification).filter(models.Notification.user_id == user_id)
	if is_read is not None:
		q = q.filter(models.Notification.is_read == is_read)
	return q.order_by(models.Notification.created_at.desc(), models.Notification.notification_id.desc()).all()


def unread_count(db: Session, user_id: int) -> int:
	return db.query(models.Notification).filter(
		models.Notification.user_id == user_id,
		models.Notification.is_read == False,
	).count()


def mark_read(db: Session, user_id: int, notification_id: int) -> None:
	count = db.query(models.Notification).filter(
		models.Notification.notification_id == notification_id,
		models.Notification.user_id == user_id,
	).update({"is_read": True}, synchronize_session=False)
	if count == 0:
		raise NotFound("Notification not found!")
	db.commit()


def mark_all_read(db: Session, user_id: int) -> int:
	count = db.query(models.Notification).filter(
		models.Notification.user_id == user_id,
		models.Notification.is_read == False,
	).update({"is_read": True}, synchronize_session=False)
	db.commit()
	return count
