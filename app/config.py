from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_TITLE: str = "Tally Time Tracker"
    MONGODB_URL: str
    DB_NAME: str = "time_tracker"
    PRODUCTION_MODE: bool = False
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    SMTP_USER: str = ""
    SMTP_USER_PWD: str = ""
    SMTP_HOST: str = ""
    SMTP_PORT: int = 465
    SUMMARY_INTERVAL_HOURS: int = 24
    SUMMARY_TIMEZONE: str = "UTC"
    TIMER_REMINDER_INTERVAL_MINUTES: int = 5
    DEFAULT_TIMER_REMINDER_TIME: str = "18:00"
    ENABLE_SCHEDULER: bool = True
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:5173"]

    class Config:
        env_file = ".env"

settings = Settings()
