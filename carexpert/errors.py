"""Error types raised by the service layer.

Routers let these propagate; the handlers registered in ``carexpert.main``
render them as ``{statusCode, message, success, errors}``.
"""


class ApiError(Exception):
	status_code = 500
	default_message = "Something went wrong"

	def __init__(self, message: str | None = None, errors: list | None = None, status_code: int | None = None):
		self.message = message or self.default_message
		self.errors = errors or []
		if status_code is not None:
			self.status_code = status_code
		super().__init__(self.message)

	def to_dict(self) -> dict:
		return {
			"statusCode": self.status_code,
			"message": self.message,
			"success": False,
			"errors": self.errors,
		}


class ValidationError(ApiError):
	status_code = 400
	default_message = "Invalid request"


class InvalidTransition(ApiError):
	status_code = 400
	default_message = "Appointment cannot change to the requested status"


class Unauthorized(ApiError):
	status_code = 401
	default_message = "Unauthorized request"


class Forbidden(ApiError):
	status_code = 403
	default_message = "You do not have permission to perform this action"


class NotFound(ApiError):
	status_code = 404
	default_message = "Resource not found"


class Conflict(ApiError):
	status_code = 409
	default_message = "Resource conflict"


class AnalysisError(ApiError):
	status_code = 502
	default_message = "AI analysis failed"


class QueueUnavailable(ApiError):
	status_code = 503
	default_message = "Report processing is temporarily unavailable"
