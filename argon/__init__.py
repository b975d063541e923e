import logging
import logging.config
from typing import Callable

from aiobotocore.session import get_session
import httpx
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from argon.constants import (
    APP_NAME,
    APP_URL,
    DATABASE_URL,
    DB_CREATE_ALL_ON_START,
    DEBUG,
    EMAIL_FROM,
    FISHER_SCIENTIFIC_API_KEY,
    LOCAL_STORAGE_PATH,
    LOCAL_STORAGE_URL,
    OPENAI_API_KEY,
    OPENAI_MODEL,
    RESEND_API_KEY,
    S3_ACCESS_KEY,
    S3_BUCKET_NAME,
    S3_SECRET_KEY,
    S3_URL,
    SDS_CHECK_INTERVAL,
    SIGMA_ALDRICH_API_KEY,
    STORAGE_TYPE,
    VWR_API_KEY,
    VWR_REGION,
    LogConfig
)
from argon.models import Base
from argon.routes import routers
from argon.services.chemical_alerts import ChemicalAlerts
from argon.services.digest import DigestMailer
from argon.services.sds_update import SdsUpdater
from argon.utils.echa import SubstanceLookup
from argon.utils.email import EmailSender
from argon.utils.ratelimit import TokenBucket
from argon.utils.sds import SdsParser
from argon.utils.storage import get_storage
from argon.utils.suppliers import SupplierSdsManager
from argon.utils.templater import Templater

logging.config.dictConfig(LogConfig().model_dump())
log = logging.getLogger("argon")

app = FastAPI(
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
)
app_router = APIRouter(prefix="/api/v1")

if DEBUG:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://127.0.0.1:3000",
            "http://localhost:3000",
        ],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

for router in routers:
    app_router.include_router(router)

app.include_router(app_router)


@app.on_event("startup")
async def start() -> None:
    """Sets up the database connection, HTTP client, storage, and the SDS and digest services."""
    app.state.engine = create_async_engine(DATABASE_URL, echo=DEBUG)
    app.state.async_session = sessionmaker(
        app.state.engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )

    if DB_CREATE_ALL_ON_START:
        async with app.state.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    app.state.http = httpx.AsyncClient()

    app.state.templater = Templater()

    boto_session = get_session()

    def s3():
        return boto_session.create_client(
            "s3",
            endpoint_url=S3_URL,
            aws_access_key_id=S3_ACCESS_KEY,
            aws_secret_access_key=S3_SECRET_KEY,
        )

    app.state.storage = get_storage(
        STORAGE_TYPE,
        s3=s3,
        bucket=S3_BUCKET_NAME,
        base_path=LOCAL_STORAGE_PATH,
        base_url=LOCAL_STORAGE_URL,
    )

    app.state.parser = SdsParser(app.state.http, OPENAI_API_KEY, OPENAI_MODEL)

    app.state.sds_updater = SdsUpdater(
        session_factory=app.state.async_session,
        suppliers=SupplierSdsManager(
            app.state.http,
            vwr_api_key=VWR_API_KEY,
            sigma_aldrich_api_key=SIGMA_ALDRICH_API_KEY,
            fisher_scientific_api_key=FISHER_SCIENTIFIC_API_KEY,
            vwr_region=VWR_REGION,
        ),
        storage=app.state.storage,
        parser=app.state.parser,
        substances=SubstanceLookup(app.state.http),
        rate_limiter=TokenBucket.every(SDS_CHECK_INTERVAL),
        logger=logging.getLogger("argon.sds"),
    )

    sender = EmailSender(app.state.http, RESEND_API_KEY, EMAIL_FROM)

    app.state.digest_mailer = DigestMailer(
        session_factory=app.state.async_session,
        sender=sender,
        templater=app.state.templater,
        app_name=APP_NAME,
        app_url=APP_URL,
        logger=logging.getLogger("argon.digest"),
    )

    app.state.chemical_alerts = ChemicalAlerts(
        session_factory=app.state.async_session,
        sender=sender,
        templater=app.state.templater,
        app_name=APP_NAME,
        app_url=APP_URL,
        logger=logging.getLogger("argon.alerts"),
    )

    log.info("Started with %s storage", STORAGE_TYPE)


@app.on_event("shutdown")
async def shutdown() -> None:
    """Closes the database connections and HTTP client."""
    await app.state.engine.dispose()
    await app.state.http.aclose()


@app.middleware("http")
async def setup_request(request: Request, callnext: Callable) -> Response:
    """Gets the database session, HTTP client, storage, parser, and services for each request."""
    request.state.http = app.state.http
    request.state.storage = app.state.storage
    request.state.parser = app.state.parser
    request.state.templater = app.state.templater
    request.state.sds_updater = app.state.sds_updater
    request.state.digest_mailer = app.state.digest_mailer
    request.state.chemical_alerts = app.state.chemical_alerts

    async with app.state.async_session() as session:
        request.state.db = session
        response = await callnext(request)

    request.state.db = None
    return response
