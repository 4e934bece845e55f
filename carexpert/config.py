from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
	app_env: str = Field(default="development")
	database_url: str = Field(default="sqlite:///./carexpert.db")
	log_level: str = Field(default="INFO")
	cors_origins: list[str] = Field(default=["*"])

	access_token_secret: str = Field(default="change-me-access")
	refresh_token_secret: str = Field(default="change-me-refresh")
	access_token_expires_minutes: int = Field(default=60 * 24)
	refresh_token_expires_minutes: int = Field(default=60 * 24 * 7)
	jwt_algorithm: str = Field(default="HS256")
	bcrypt_rounds: int = Field(default=12)
	default_profile_picture: str = Field(default="https://res.cloudinary.com/carexpert/image/upload/default_profile.jpg")

	groq_api_key: str | None = None
	groq_model: str = Field(default="llama-3.1-8b-instant")

	ocr_api_url: str = Field(default="https://api.ocr.space/parse/image")
	ocr_api_key: str | None = None
	upload_dir: str = Field(default="./uploads")
	max_report_size_bytes: int = Field(default=10 * 1024 * 1024)

	google_token_file: str | None = Field(default="token.json")
	notification_email_enabled: bool = Field(default=False)

	celery_broker_url: str = Field(default="redis://localhost:6379/0")
	celery_result_backend: str = Field(default="redis://localhost:6379/1")
	celery_task_always_eager: bool = Field(default=False)
	report_worker_concurrency: int = Field(default=4)
	report_rate_limit: str = Field(default="5/s")

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"

settings = Settings()
