import asyncio
import sys
import os
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

sys.path.append(os.getcwd())
from app.config import settings
from app.models.employee import Employee, EmployeeRole
from app.core.security import hash_password


async def create_admin(email: str, password: str, name: str = "System Admin"):
    print("🚀 Connecting to MongoDB...")
    client = AsyncIOMotorClient(settings.MONGODB_URL, serverSelectionTimeoutMS=settings.DB_TIMEOUT_MS)
    database = client[settings.MONGODB_DB_NAME]

    await init_beanie(
        database=database,
        document_models=[Employee]
    )

    existing = await Employee.find_one(Employee.email == email)
    if existing:
        if existing.role == EmployeeRole.ADMIN:
            print(f"ℹ️ Admin user '{email}' already exists.")
        else:
            existing.role = EmployeeRole.ADMIN
            await existing.save()
            print(f"⬆️ Promoted '{email}' to admin.")
    else:
        print(f"🆕 Creating admin user: {email}")
        admin = Employee(
            employee_id=email,
            name=name,
            email=email,
            department="Management",
            role=EmployeeRole.ADMIN,
            password_hash=hash_password(password),
        )
        await admin.insert()
        print("✅ Admin user created successfully!")

    client.close()


if __name__ == "__main__":
    # usage: python create_admin.py [email] [password]
    admin_email = sys.argv[1] if len(sys.argv) > 1 else settings.DEFAULT_ADMIN_EMAIL
    admin_password = sys.argv[2] if len(sys.argv) > 2 else settings.DEFAULT_ADMIN_PASSWORD
    asyncio.run(create_admin(admin_email, admin_password))
