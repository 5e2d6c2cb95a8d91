#!/usr/bin/env python3
"""Create an approved admin account, or promote an existing one.

Usage:
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=SecurePass123 python scripts/create_admin.py
    python scripts/create_admin.py --email admin@example.com --password SecurePass123
"""
import argparse
import os
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def create_admin(email: str, password: str | None) -> str:
    from core.database import Base, SessionLocal, engine
    from models.users import User
    from services.approval_service import ApprovalService
    from utils.hashing import get_password_hash

    Base.metadata.create_all(bind=engine)
    email = ApprovalService.normalize_email(email)

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).one_or_none()
        if user:
            user.is_admin = True
            user.approved = True
            if password:
                user.hashed_password = get_password_hash(password)
            db.commit()
            return "promoted"

        if not password:
            raise SystemExit("A password is required to create a new admin account")

        db.add(User(
            email=email,
            display_name=email.split("@")[0],
            hashed_password=get_password_hash(password),
            approved=True,
            is_admin=True
        ))
        db.commit()
        return "created"
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or promote an admin account")
    parser.add_argument("--email", default=os.environ.get("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.environ.get("ADMIN_PASSWORD"))
    args = parser.parse_args()

    if not args.email:
        parser.error("--email or ADMIN_EMAIL is required")

    result = create_admin(args.email, args.password)
    print(f"Admin {args.email}: {result}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
