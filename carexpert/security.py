"""Password hashing and JWT helpers."""

from datetime import datetime, timedelta
from typing import Any, Optional

from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from carexpert.config import settings
from carexpert.logger import get_logger

log = get_logger("security")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


def hash_password(password: str) -> str:
	return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
	try:
		return pwd_context.verify(plain_password, hashed_password)
	except ValueError as e:
		log.warning("Password verification error: %s", e)
		return False


def _encode(user_id: int, secret: str, minutes: int, token_type: str) -> str:
	payload = {
		"sub": str(user_id),
		"type": token_type,
		"exp": datetime.utcnow() + timedelta(minutes=minutes),
	}
	return jose_jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int) -> str:
	return _encode(user_id, settings.access_token_secret, settings.access_token_expires_minutes, "access")


def create_refresh_token(user_id: int) -> str:
	return _encode(user_id, settings.refresh_token_secret, settings.refresh_token_expires_minutes, "refresh")


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
	"""
	Decode an access token.

	Returns:
		The payload when the signature and expiry are valid, otherwise None
	"""
	try:
		payload = jose_jwt.decode(token, settings.access_token_secret, algorithms=[settings.jwt_algorithm])
	except JWTError as e:
		log.info("JWT verification failed: %s", e)
		return None
	if payload.get("type") != "access":
		return None
	return payload
