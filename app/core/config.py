import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cv_analyzer.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "90"))

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_BASIC_PRICE_ID = os.getenv("STRIPE_BASIC_PRICE_ID")
STRIPE_PREMIUM_PRICE_ID = os.getenv("STRIPE_PREMIUM_PRICE_ID")
STRIPE_CREDITS_50_PRICE_ID = os.getenv("STRIPE_CREDITS_50_PRICE_ID")
STRIPE_CREDITS_100_PRICE_ID = os.getenv("STRIPE_CREDITS_100_PRICE_ID")
STRIPE_CREDITS_250_PRICE_ID = os.getenv("STRIPE_CREDITS_250_PRICE_ID")
STRIPE_CREDITS_500_PRICE_ID = os.getenv("STRIPE_CREDITS_500_PRICE_ID")

# ✅ Frontend
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# ✅ Object storage
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
STORAGE_LOCAL_PATH = os.getenv("STORAGE_LOCAL_PATH", "./uploads")
STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL", "http://localhost:8000/files")
GCS_BUCKET_NAME = os.getenv("GCS_BUCKET_NAME", "cv-analyzer-resumes")

# ✅ Resume processing
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
PROCESSING_TIMEOUT_MINUTES = int(os.getenv("PROCESSING_TIMEOUT_MINUTES", "15"))

# ✅ Credits
SIGNUP_BONUS_CREDITS = int(os.getenv("SIGNUP_BONUS_CREDITS", "10"))

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
