"""
Mint an admin token for the analytics endpoints.
Usage: ADMIN_EMAIL=you@example.org python scripts/create_admin_token.py
"""
import os
import sys

from sitepulse.core.config import settings
from sitepulse.core.jwt import create_access_token


def create_admin_token():
    if not settings.SECRET_KEY:
        print("SECRET_KEY is not set; refusing to sign a token with an empty key.")
        sys.exit(1)

    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.org")
    token = create_access_token(subject=admin_email)

    print(f"Admin token for {admin_email} (valid {settings.ACCESS_TOKEN_EXPIRE_MINUTES} minutes):")
    print(token)
    print(f"\nSend it as 'Authorization: Bearer <token>' or in the '{settings.AUTH_COOKIE_NAME}' cookie.")


if __name__ == "__main__":
    create_admin_token()
