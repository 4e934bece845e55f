from datetime import datetime, timezone
from fastapi import WebSocket, WebSocketDisconnect
from carexpert.logger import get_logger

log = get_logger("chat_hub")

BOT_NAME = "CareXpert Bot"


def room_channel(room_id: int) -> str:
	return f"room:{room_id}"


def dm_channel(conversation_id: int) -> str:
	return f"dm:{conversation_id}"


def system_message(text: str) -> dict:
	return {
		"sender_name": BOT_NAME,
		"message": text,
		"system": True,
		"timestamp": datetime.now(timezone.utc).isoformat(),
	}


class ChatHub:
	"""In-memory channel membership for the sockets connected to this process.

	Nothing here survives a restart; clients re-join after reconnecting.
	"""

	def __init__(self):
		self.channels: dict[str, set[WebSocket]] = {}

	def join(self, channel: str, ws: WebSocket) -> None:
		self.channels.setdefault(channel, set()).add(ws)

	def is_member(self, channel: str, ws: WebSocket) -> bool:
		return ws in self.channels.get(channel, ())

	def leave_all(self, ws: WebSocket) -> None:
		for channel in list(self.channels):
			members = self.channels[channel]
			members.discard(ws)
			if not members:
				del self.channels[channel]

	async def send(self, ws: WebSocket, event: str, data) -> None:
		await ws.send_json({"event": event, "data": data})

	async def broadcast(self, channel: str, event: str, data, exclude: WebSocket | None = None) -> None:
		for ws in list(self.channels.get(channel, ())):
			if ws is exclude:
				continue
			try:
				await self.send(ws, event, data)
			except (WebSocketDisconnect, RuntimeError, OSError) as e:
				log.warning("dropping socket from %s: %s", channel, e)
				self.leave_all(ws)


hub = ChatHub()
