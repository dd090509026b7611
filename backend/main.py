from fastapi import FastAPI, Request
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from db.database import create_db_and_tables
from routers.account import router as account_router
from routers.boxes import router as boxes_router
from routers.images import router as images_router
from routers.locations import router as locations_router
from routers.scan import router as scan_router
from routers.search import router as search_router
from core.auth import fastapi_users, auth_backend
from core.errors import BinQRError
from core.logging_setup import setup_logging
from contextlib import asynccontextmanager
from schemas.users import UserRead, UserCreate, UserUpdate

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    yield


app = FastAPI(
    title="BinQR API",
    description="API for tracking storage boxes, their locations and QR codes",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BinQRError)
async def binqr_error_handler(request: Request, exc: BinQRError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.__class__.__name__},
    )


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Account lifecycle (profile, onboarding, verification)
app.include_router(account_router, prefix="/account", tags=["account"])

# Box photo routes
app.include_router(images_router, prefix="/images", tags=["images"])

# Inventory routes
app.include_router(locations_router, prefix="/locations", tags=["locations"])
app.include_router(boxes_router, prefix="/boxes", tags=["boxes"])
app.include_router(search_router, prefix="/search", tags=["search"])
app.include_router(scan_router, prefix="/scan", tags=["scan"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
