import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.access_guard import get_admin_role, require_active_user
from app.core.auth_dependency import get_current_user
from app.core.config import SIGNUP_BONUS_CREDITS
from app.core.security import hash_password, verify_password, create_access_token
from app.db.session import get_db
from app.db.models.user import Profile
from app.db.models.credit_transaction import CreditTransaction
from app.schemas.auth import SignupRequest, TokenResponse, ProfileResponse, ProfileUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _profile_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        credits=profile.credits,
        subscription_status=profile.subscription_status,
        is_blocked=profile.is_blocked,
        admin_role=get_admin_role(profile),
    )


# ✅ USER SIGNUP
@router.post("/signup", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    """
    Create a profile with the signup bonus.

    The bonus is written as a ledger row in the same transaction so the
    cached balance matches the ledger from the first moment.
    """
    email = payload.email.lower()
    if db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        password_hash = hash_password(payload.password)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid password")

    profile = Profile(
        email=email,
        full_name=payload.full_name,
        password_hash=password_hash,
        credits=SIGNUP_BONUS_CREDITS,
        subscription_status="free",
    )
    try:
        db.add(profile)
        db.flush()
        db.add(CreditTransaction(
            user_id=profile.id,
            amount=SIGNUP_BONUS_CREDITS,
            type="bonus",
            description="Welcome bonus credits",
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")

    db.refresh(profile)
    logger.info(f"User signed up: user_id={profile.id}, bonus_credits={SIGNUP_BONUS_CREDITS}")
    return _profile_response(profile)


# ✅ OAUTH2 LOGIN (Swagger sends "username", treated as email)
@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    profile = db.query(Profile).filter(Profile.email == form_data.username.lower()).first()

    if not profile or not verify_password(form_data.password, profile.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if profile.is_blocked:
        logger.warning(f"Blocked user attempted login: user_id={profile.id}")
        raise HTTPException(
            status_code=403,
            detail="Your account has been blocked. Please contact support for assistance.",
        )

    token = create_access_token(profile.id, profile.session_version)
    return TokenResponse(access_token=token)


# ✅ LOGOUT: invalidates every token issued so far
@router.post("/logout")
def logout(profile: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    profile.session_version = (profile.session_version or 0) + 1
    db.commit()
    logger.info(f"User signed out: user_id={profile.id}")
    return {"message": "Signed out"}


@router.get("/me", response_model=ProfileResponse)
def me(profile: Profile = Depends(get_current_user)):
    return _profile_response(profile)


# ✅ SELF-SERVICE PROFILE UPDATE
@router.put("/me", response_model=ProfileResponse)
def update_me(
    payload: ProfileUpdateRequest,
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
):
    profile.full_name = payload.full_name
    db.commit()
    db.refresh(profile)
    logger.info(f"Profile updated: user_id={profile.id}")
    return _profile_response(profile)
