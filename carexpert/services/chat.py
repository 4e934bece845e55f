import math
from sqlalchemy import or_
from sqlalchemy.orm import Session
from carexpert import models
from carexpert.schemas import ChatMessageOut, RoomMemberOut
from carexpert.errors import ValidationError, Forbidden, NotFound, Conflict
from carexpert.services.accounts import get_or_create_room
from carexpert.logger import get_logger

log = get_logger("chat")


def paginate(q, page: int, limit: int, order_by):
	total = q.count()
	items = q.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
	return items, {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if total else 0}


def format_message(msg: models.ChatMessage) -> dict:
	data = ChatMessageOut.model_validate(msg).model_dump(mode="json")
	data["sender_name"] = msg.sender.name if msg.sender else None
	return data


# ---- rooms ----

def room_by_name(db: Session, name: str) -> models.Room:
	room = db.query(models.Room).filter(models.Room.name == name).first()
	if not room:
		raise NotFound("Room not found")
	return room


def join_city_room(db: Session, user: models.User, city: str) -> models.Room:
	city = (city or "").strip()
	if not city:
		raise ValidationError("City is required")
	try:
		room = get_or_create_room(db, city)
		if user not in room.members:
			room.members.append(user)
		db.commit()
	except Exception:
		db.rollback()
		raise
	return room


def list_rooms(db: Session, user: models.User) -> list[models.Room]:
	if user.role == models.Role.DOCTOR:
		return sorted(user.rooms, key=lambda r: r.name)
	return db.query(models.Room).order_by(models.Room.name.asc()).all()


def create_room(db: Session, user: models.User, name: str) -> models.Room:
	name = (name or "").strip()
	if not name:
		raise ValidationError("Room name is required")
	if db.query(models.Room).filter(models.Room.name == name).first():
		raise Conflict("Room already exists")
	room = models.Room(name=name)
	room.members.append(user)
	room.admins.append(user)
	db.add(room)
	db.commit()
	db.refresh(room)
	log.info("room created by user=%s name=%s", user.user_id, name)
	return room


def save_room_message(db: Session, sender: models.User, room: models.Room, text: str) -> models.ChatMessage:
	text = (text or "").strip()
	if not text:
		raise ValidationError("Message text is required")
	msg = models.ChatMessage(sender_id=sender.user_id, room_id=room.room_id, message=text, message_type=models.MessageType.TEXT)
	db.add(msg)
	db.commit()
	db.refresh(msg)
	return msg


def room_history(db: Session, room_name: str, page: int = 1, limit: int = 50):
	room = room_by_name(db, room_name)
	q = db.query(models.ChatMessage).filter(models.ChatMessage.room_id == room.room_id)
	return paginate(q, page, limit, (models.ChatMessage.timestamp.asc(), models.ChatMessage.message_id.asc()))


# ---- direct messages ----

def conversation_between(db: Session, user_id: int, other_id: int, create: bool = True) -> models.Conversation | None:
	if user_id == other_id:
		raise ValidationError("Cannot start a conversation with yourself")
	a, b = sorted((user_id, other_id))
	conv = db.query(models.Conversation).filter(
		models.Conversation.user_a_id == a, models.Conversation.user_b_id == b
	).first()
	if conv or not create:
		return conv
	if not db.query(models.User).filter(models.User.user_id == other_id).first():
		raise NotFound("User not found")
	conv = models.Conversation(user_a_id=a, user_b_id=b)
	db.add(conv)
	db.commit()
	db.refresh(conv)
	return conv


def save_direct_message(db: Session, sender: models.User, receiver_id: int, text: str | None, image_url: str | None = None):
	text = (text or "").strip()
	if not text and not image_url:
		raise ValidationError("Message text or image is required")
	conv = conversation_between(db, sender.user_id, receiver_id)
	msg = models.ChatMessage(
		sender_id=sender.user_id,
		receiver_id=receiver_id,
		conversation_id=conv.conversation_id,
		message=text,
		message_type=models.MessageType.IMAGE if image_url else models.MessageType.TEXT,
		image_url=image_url,
	)
	db.add(msg)
	db.commit()
	db.refresh(msg)
	return conv, msg


def conversation_history(db: Session, user: models.User, conversation_id: int, page: int = 1, limit: int = 50):
	conv = db.query(models.Conversation).filter(models.Conversation.conversation_id == conversation_id).first()
	if not conv:
		raise NotFound("Conversation not found")
	if user.user_id not in (conv.user_a_id, conv.user_b_id):
		raise Forbidden("Not a participant of this conversation")
	q = db.query(models.ChatMessage).filter(models.ChatMessage.conversation_id == conv.conversation_id)
	return paginate(q, page, limit, (models.ChatMessage.timestamp.asc(), models.ChatMessage.message_id.asc()))


def history_with_user(db: Session, user: models.User, other_id: int, page: int = 1, limit: int = 50):
	conv = conversation_between(db, user.user_id, other_id, create=False)
	if not conv:
		return [], {"page": page, "limit": limit, "total": 0, "pages": 0}
	return conversation_history(db, user, conv.conversation_id, page, limit)


def list_conversations(db: Session, user: models.User) -> list[dict]:
	convs = db.query(models.Conversation).filter(
		or_(models.Conversation.user_a_id == user.user_id, models.Conversation.user_b_id == user.user_id)
	).all()
	rows = []
	for conv in convs:
		last = db.query(models.ChatMessage).filter(
			models.ChatMessage.conversation_id == conv.conversation_id
		).order_by(models.ChatMessage.timestamp.desc(), models.ChatMessage.message_id.desc()).first()
		key = (last.timestamp, last.message_id) if last else (conv.created_at, 0)
		rows.append((key, {
			"conversation_id": conv.conversation_id,
			"other_user": RoomMemberOut.model_validate(conv.other(user.user_id)),
			"last_message": ChatMessageOut.model_validate(last) if last else None,
		}))
	# most recently active first
	rows.sort(key=lambda r: r[0], reverse=True)
	return [r[1] for r in rows]
