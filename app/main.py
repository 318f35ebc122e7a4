import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

# ✅ Import All API Routes
from app.api.routes import (
    admin,
    admin_billing_plans,
    admin_stripe_plans,
    auth,
    billing,
    billing_webhook,
    cover_letter,
    health,
    resumes,
)
from app.core.config import CORS_ORIGINS, LOG_LEVEL, STORAGE_BACKEND, STORAGE_LOCAL_PATH
from app.core.logging_config import setup_logging
from app.db.init_db import init_db

logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="CV Analyzer API")

# ✅ CORS: only the configured frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(resumes.router)
app.include_router(cover_letter.router)
app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(admin.router)
app.include_router(admin.public_router)
app.include_router(admin_billing_plans.router)
app.include_router(admin_stripe_plans.router)

# ✅ Serve uploaded files when storing on local disk
if STORAGE_BACKEND == "local":
    Path(STORAGE_LOCAL_PATH).mkdir(parents=True, exist_ok=True)
    app.mount("/files", StaticFiles(directory=STORAGE_LOCAL_PATH), name="files")


@app.on_event("startup")
def on_startup():
    setup_logging(LOG_LEVEL)
    init_db()
    logger.info("CV Analyzer API started")


@app.get("/")
def root():
    return {"status": "CV Analyzer API running"}
