import json
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from typing import List
from carexpert.db import get_db, SessionLocal
from carexpert import models
from carexpert.deps import get_current_user, require_role, user_from_token
from carexpert.errors import ApiError, ValidationError
from carexpert.schemas import RoomIn, RoomOut, MessagePage, ConversationOut
from carexpert.services import chat
from carexpert.services.chat_hub import hub, room_channel, dm_channel, system_message
from carexpert.logger import get_logger

router = APIRouter(prefix="/api/chat", tags=["chat"])
log = get_logger("chat_ws")

PAGE = Query(1, ge=1)
LIMIT = Query(50, ge=1, le=100)


@router.get("/rooms", response_model=List[RoomOut])
def list_rooms(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return chat.list_rooms(db, user)

@router.post("/rooms", response_model=RoomOut, status_code=201)
def create_room(payload: RoomIn, user: models.User = Depends(require_role(models.Role.DOCTOR)), db: Session = Depends(get_db)):
	return chat.create_room(db, user, payload.room_name)

@router.get("/room/{room_name}", response_model=MessagePage)
def room_messages(room_name: str, page: int = PAGE, limit: int = LIMIT, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	messages, pagination = chat.room_history(db, room_name, page, limit)
	return {"messages": messages, "pagination": pagination}

@router.get("/city/{city}", response_model=MessagePage)
def city_messages(city: str, page: int = PAGE, limit: int = LIMIT, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	messages, pagination = chat.room_history(db, city, page, limit)
	return {"messages": messages, "pagination": pagination}

@router.get("/conversation/{conversation_id}", response_model=MessagePage)
def conversation_messages(conversation_id: int, page: int = PAGE, limit: int = LIMIT, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	messages, pagination = chat.conversation_history(db, user, conversation_id, page, limit)
	return {"messages": messages, "pagination": pagination}

@router.get("/one-on-one/{other_user_id}", response_model=MessagePage)
def one_on_one(other_user_id: int, page: int = PAGE, limit: int = LIMIT, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	messages, pagination = chat.history_with_user(db, user, other_user_id, page, limit)
	return {"messages": messages, "pagination": pagination}

@router.get("/doctor/conversations", response_model=List[ConversationOut])
def doctor_conversations(user: models.User = Depends(require_role(models.Role.DOCTOR)), db: Session = Depends(get_db)):
	return chat.list_conversations(db, user)

@router.get("/patient/conversations", response_model=List[ConversationOut])
def patient_conversations(user: models.User = Depends(require_role(models.Role.PATIENT)), db: Session = Depends(get_db)):
	return chat.list_conversations(db, user)


# ---- realtime ----

def _int(data: dict, key: str) -> int:
	value = data.get(key)
	if isinstance(value, bool) or not isinstance(value, (int, str)) or not str(value).isdigit():
		raise ValidationError(f"{key} must be a user id")
	return int(value)


async def _handle(ws: WebSocket, db: Session, user: models.User, event: str, data: dict) -> None:
	if event == "joinRoom":
		room = chat.join_city_room(db, user, data.get("city"))
		channel = room_channel(room.room_id)
		hub.join(channel, ws)
		await hub.send(ws, "message", system_message(f"Welcome to {room.name} room!"))
		await hub.broadcast(channel, "message", system_message(f"{user.name} has joined the room"), exclude=ws)

	elif event == "roomMessage":
		room = chat.room_by_name(db, (data.get("city") or "").strip())
		channel = room_channel(room.room_id)
		if not hub.is_member(channel, ws):
			raise ValidationError("Join the room before sending messages")
		msg = chat.save_room_message(db, user, room, data.get("text"))
		await hub.broadcast(channel, "message", chat.format_message(msg))

	elif event == "joinDmRoom":
		conv = chat.conversation_between(db, user.user_id, _int(data, "otherUserId"))
		hub.join(dm_channel(conv.conversation_id), ws)
		await hub.send(ws, "message", system_message("You joined the conversation"))

	elif event == "dmMessage":
		conv, msg = chat.save_direct_message(db, user, _int(data, "receiverId"), data.get("text"), data.get("imageUrl"))
		channel = dm_channel(conv.conversation_id)
		hub.join(channel, ws)
		await hub.broadcast(channel, "message", chat.format_message(msg))

	else:
		raise ValidationError(f"Unknown event: {event}")


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, token: str | None = None):
	db = SessionLocal()
	try:
		try:
			user = user_from_token(db, token or websocket.cookies.get("accessToken"))
		except ApiError as e:
			log.info("rejecting socket: %s", e.message)
			await websocket.close(code=1008, reason=e.message)
			return
		await websocket.accept()
		log.info("socket opened user=%s", user.user_id)
		while True:
			raw = await websocket.receive_text()
			try:
				frame = json.loads(raw)
				if not isinstance(frame, dict):
					raise ValueError("frame must be an object")
			except ValueError:
				await hub.send(websocket, "error", "Malformed frame")
				continue
			data = frame.get("data") if isinstance(frame.get("data"), dict) else {}
			try:
				await _handle(websocket, db, user, frame.get("event"), data)
			except ApiError as e:
				await hub.send(websocket, "error", e.message)
	except WebSocketDisconnect:
		pass
	finally:
		hub.leave_all(websocket)
		db.close()
		log.info("socket closed")
