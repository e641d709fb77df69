#!/usr/bin/env python3
"""
Create an admin profile in the configured DATABASE_URL and print credentials + JWT.

Optional environment variables:
- ADMIN_NAME
- ADMIN_EMAIL
- ADMIN_PASSWORD
- ADMIN_REGISTRATION_NUMBER

This script uses the same application code (quirii.auth) so passwords and
tokens are created consistently with the running backend.
"""
import asyncio
import os
import secrets
import sys

try:
    from quirii.database import async_session_factory, init_db
    from quirii.auth import register_profile, create_access_token
except Exception as e:
    print("Failed to import application modules:", e, file=sys.stderr)
    sys.exit(2)


async def main():
    name = os.environ.get("ADMIN_NAME", "Forum Admin")
    email = os.environ.get("ADMIN_EMAIL", f"admin-{secrets.token_hex(4)}@example.com")
    password = os.environ.get("ADMIN_PASSWORD") or secrets.token_urlsafe(12)
    reg_number = os.environ.get("ADMIN_REGISTRATION_NUMBER", f"ADMIN-{secrets.token_hex(3)}")

    await init_db()
    async with async_session_factory() as session:
        profile = await register_profile(
            session,
            name=name,
            registration_number=reg_number,
            email=email,
            password=password,
            role="admin",
        )
        token = create_access_token(subject=profile.id, role="admin")

        print("ADMIN_CREATED")
        print(f"id: {profile.id}")
        print(f"name: {profile.name}")
        print(f"email: {profile.email}")
        print(f"password: {password}")
        print(f"access_token: {token}")


if __name__ == "__main__":
    asyncio.run(main())
