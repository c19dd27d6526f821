"""
Create an account (e.g. first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role] [--name NAME] [--inactive]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password admin
"""
import argparse
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.services.credential_store import CredentialStore
from app.services.errors import StoreError, store_errors


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Warden account (no registration UI).")
    parser.add_argument("email", help="Email (1-255 chars)")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin"])
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument("--inactive", action="store_true", help="Create the account disabled")
    args = parser.parse_args(argv)

    email = args.email.strip()
    if not email or len(email) > EMAIL_MAX_LEN or "@" not in email:
        print("Invalid email.", file=sys.stderr)
        return 1
    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    settings = get_settings()
    db = SessionLocal()
    try:
        store = CredentialStore(db)
        if store.email_taken(email):
            print(f"Account '{email}' already exists.", file=sys.stderr)
            return 1
        store.create(
            email=email,
            password_hash=hash_password(args.password, rounds=settings.BCRYPT_ROUNDS),
            name=args.name,
            role=args.role,
            is_active=not args.inactive,
        )
        with store_errors("create"):
            db.commit()
        print(f"Created account '{email}' with role '{args.role}'.")
        return 0
    except StoreError as e:
        db.rollback()
        print(f"Could not create account: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
