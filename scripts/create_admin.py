"""
Create or update an administrator account.

Usage (from project root):
    python -m scripts.create_admin --email owner@example.com --password '...'
        [--name 'Studio Owner']
"""
import argparse

from sqlalchemy.orm import Session

from clientgallery.models.user import User
from clientgallery.services.auth import create_user, hash_password
from db import SessionLocal


def upsert_admin(email: str, password: str | None, full_name: str) -> tuple[bool, int]:
    s: Session = SessionLocal()
    try:
        user = s.query(User).filter(User.Email == email).first()
        created = False
        if not user:
            if not password:
                raise ValueError("Password required to create a new admin")
            user = create_user(s, email, password, full_name=full_name, is_admin=True)
            created = True
        else:
            if full_name:
                setattr(user, "FullName", full_name)
            if password:
                setattr(user, "HashedPassword", hash_password(password))
        setattr(user, "IsActive", True)
        setattr(user, "IsAdmin", True)
        s.commit()
        s.refresh(user)
        return created, int(getattr(user, "UserID"))
    finally:
        s.close()


def main():
    parser = argparse.ArgumentParser(description="Create or update an admin user.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", default=None)
    parser.add_argument("--name", default="")
    args = parser.parse_args()

    created, user_id = upsert_admin(
        email=args.email.strip().lower(),
        password=args.password,
        full_name=args.name.strip(),
    )
    status = "created" if created else "updated"
    print(f"Admin {status}: id={user_id} email={args.email}")


if __name__ == "__main__":
    main()
