import asyncio

from sqlalchemy import select

from stripe_assistant.core.security import get_password_hash
from stripe_assistant.db.session import AsyncSessionLocal, init_models
from stripe_assistant.models.organization import Organization
from stripe_assistant.models.user import ROLE_ADMIN, ROLE_MEMBER, User

ORGANIZATION_ID = "org_default"
ORGANIZATION_NAME = "Default Organization"

SEED_USERS = [
    {"email": "admin@example.com", "username": "admin", "password": "admin123",
     "full_name": "Admin User", "role": ROLE_ADMIN},
    {"email": "member@example.com", "username": "member", "password": "member123",
     "full_name": "Member User", "role": ROLE_MEMBER},
]


async def seed():
    await init_models()

    async with AsyncSessionLocal() as db:
        organization = await db.get(Organization, ORGANIZATION_ID)
        if organization is None:
            organization = Organization(id=ORGANIZATION_ID, name=ORGANIZATION_NAME)
            db.add(organization)
            await db.commit()
        print(f"Organization: {organization.name}")

        for seed_user in SEED_USERS:
            result = await db.execute(select(User).filter(User.email == seed_user["email"]))
            if result.scalar_one_or_none():
                print(f"User {seed_user['email']} already exists.")
                continue

            db.add(User(
                email=seed_user["email"],
                username=seed_user["username"],
                hashed_password=get_password_hash(seed_user["password"]),
                full_name=seed_user["full_name"],
                role=seed_user["role"],
                organization_id=ORGANIZATION_ID,
                is_active=True,
            ))
            await db.commit()
            print(f"Created {seed_user['role']} user: {seed_user['email']} / {seed_user['password']}")


if __name__ == "__main__":
    asyncio.run(seed())
