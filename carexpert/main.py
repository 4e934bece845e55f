from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from carexpert.config import settings
from carexpert.db import engine, Base
from carexpert.errors import ApiError
from carexpert.routers import users, doctors, patients, appointments
from carexpert.routers import chat, ai_chat, reports
from carexpert.logger import get_logger

app = FastAPI(title="CareXpert API", version="1.0.0")
log = get_logger("api")

app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Create tables on startup; use migrations for a long-lived database
Base.metadata.create_all(bind=engine)

app.include_router(users.router)
app.include_router(doctors.router)
app.include_router(patients.router)
app.include_router(appointments.router)
app.include_router(chat.router)
app.include_router(ai_chat.router)
app.include_router(reports.router)

@app.get("/")

def root():
	return {"status": "ok", "env": settings.app_env}


def _envelope(status_code: int, message: str, errors: list | None = None) -> JSONResponse:
	return JSONResponse(
		status_code=status_code,
		content={"statusCode": status_code, "message": message, "success": False, "errors": errors or []},
	)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
	if exc.status_code >= 500:
		log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
	return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
	errors = [
		{"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg")}
		for e in exc.errors()
	]
	return _envelope(400, "Validation failed", errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
	log.exception("Unhandled error: %s", exc)
	return _envelope(500, "Internal server error")
