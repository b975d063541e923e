from decouple import config
from pydantic import BaseModel

DEBUG = config("DEBUG", cast=bool, default=False)
DATABASE_URL = config("DATABASE_URL")
DB_CREATE_ALL_ON_START = config("DB_CREATE_ALL_ON_START", cast=bool, default=False)

STORAGE_TYPE = config("STORAGE_TYPE", default="s3")
S3_URL = config("S3_URL", default=None)
S3_ACCESS_KEY = config("S3_ACCESS_KEY", default=None)
S3_SECRET_KEY = config("S3_SECRET_KEY", default=None)
S3_BUCKET_NAME = config("S3_BUCKET_NAME", default="hmsnova")
LOCAL_STORAGE_PATH = config("LOCAL_STORAGE_PATH", default="storage")
LOCAL_STORAGE_URL = config("LOCAL_STORAGE_URL", default="/files/")

VWR_API_KEY = config("VWR_API_KEY", default=None)
VWR_REGION = config("VWR_REGION", default="eu")
SIGMA_ALDRICH_API_KEY = config("SIGMA_ALDRICH_API_KEY", default=None)
FISHER_SCIENTIFIC_API_KEY = config("FISHER_SCIENTIFIC_API_KEY", default=None)

OPENAI_API_KEY = config("OPENAI_API_KEY", default=None)
OPENAI_MODEL = config("OPENAI_MODEL", default="gpt-4o-mini")

RESEND_API_KEY = config("RESEND_API_KEY", default=None)
EMAIL_FROM = config("EMAIL_FROM", default="HMS Nova <noreply@hmsnova.no>")
APP_NAME = config("APP_NAME", default="HMS Nova")
APP_URL = config("APP_URL", default="https://www.hmsnova.no")

# Seconds between supplier checks in the weekly sweep
SDS_CHECK_INTERVAL = config("SDS_CHECK_INTERVAL", cast=float, default=2.0)
# Parsed hazard fields only replace stored ones above this confidence
SDS_CONFIDENCE_THRESHOLD = config("SDS_CONFIDENCE_THRESHOLD", cast=float, default=0.7)

JOBS_TOKEN = config("JOBS_TOKEN", default=None)


class LogConfig(BaseModel):
    """Logging configuration for the application."""

    LOGGER_NAME: str = "argon"
    LOG_FORMAT: str = "%(levelprefix)s | %(asctime)s | %(name)s | %(message)s"
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

    # Logging config
    version: int = 1
    disable_existing_loggers: bool = False
    formatters: dict = {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": LOG_FORMAT,
            "datefmt": r"%Y-%m-%d %H:%M:%S",
        },
    }
    handlers: dict = {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    }
    loggers: dict = {
        LOGGER_NAME: {"handlers": ["default"], "level": LOG_LEVEL},
    }
