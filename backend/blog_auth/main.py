from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blog_auth.config import get_settings
from blog_auth.database import connect_to_mongo, close_mongo_connection
from blog_auth.core.security import clock, password_hasher, token_codec
from blog_auth.users.repository import MongoIdentityStore
from blog_auth.notifications.email import close_email_notifier
from blog_auth.auth.router import router as auth_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, connect to MongoDB and prepare indexes."""
    # Startup: a missing signing secret is fatal
    token_codec.ensure_configured()

    db = await connect_to_mongo()
    identity_store = MongoIdentityStore(db, password_hasher=password_hasher, clock=clock)
    await identity_store.ensure_indexes()
    logger.info("Identity indexes ensured")

    yield

    # Shutdown
    await close_email_notifier()
    await close_mongo_connection()


app = FastAPI(title="Blog Auth API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)


@app.get("/health")
def health():
    return {"status": "ok"}
