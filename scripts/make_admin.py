"""
Grant an admin role to an existing profile.
Run: python -m scripts.make_admin user@example.com [admin|super_admin]
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import SessionLocal
from app.db.models.user import Profile
from app.db.models.admin_user import AdminUser, ADMIN_ROLES
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def make_admin(email: str, role: str = "super_admin") -> bool:
    """Create or update the admin_users row for ``email``."""
    if role not in ADMIN_ROLES:
        logger.error(f"Unknown role {role!r}; expected one of {ADMIN_ROLES}")
        return False

    db = SessionLocal()
    try:
        profile = db.query(Profile).filter(Profile.email == email.lower()).first()
        if not profile:
            logger.error(f"User {email} not found. Sign up first, then rerun.")
            return False

        admin = db.query(AdminUser).filter(AdminUser.user_id == profile.id).first()
        if admin:
            logger.info(f"Updating existing admin role for {email}: {admin.role} -> {role}")
            admin.role = role
        else:
            logger.info(f"Creating admin row for {email} (ID: {profile.id}) with role {role}")
            db.add(AdminUser(user_id=profile.id, role=role, permissions=[]))

        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Error granting admin role: {e}", exc_info=True)
        return False
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m scripts.make_admin <email> [admin|super_admin]")
        sys.exit(2)

    email = sys.argv[1]
    role = sys.argv[2] if len(sys.argv) > 2 else "super_admin"

    if make_admin(email, role):
        print(f"\n[SUCCESS] {email} is now {role}")
    else:
        print(f"\n[ERROR] Failed to grant {role} to {email}")
        sys.exit(1)
