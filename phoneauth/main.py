import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .core.database import engine, Base, SessionLocal
from .core.config import settings
from .core.errors import AuthError
# Import models so Base.metadata knows every table
from .models.user import User
from .models.otp_request import OtpRequest
from .models.refresh_token import RefreshToken
from .models.user_session import UserSession
from .services.otp_service import OtpService
from .routers.auth import router as auth_router
from .routers.sessions import router as sessions_router
from .routers.users import router as users_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables
    Base.metadata.create_all(bind=engine)

    # Drop OTP requests no longer needed for verification or rate limiting
    with SessionLocal() as db:
        OtpService(db, settings).purge_stale()

    logger.info(f"{settings.APP_NAME} started")
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Configure CORS
raw_origins = settings.CORS_ORIGINS or "*"
origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
allow_credentials = False if "*" in origins else True
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Routers
app.include_router(auth_router)
app.include_router(sessions_router)
app.include_router(users_router)

@app.get("/")
def root():
    return {"status": "ok"}

@app.get("/health")
def health():
    return {"status": "healthy"}
