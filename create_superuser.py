# create_superuser.py
import asyncio
import sys
from getpass import getpass

from pymongo.errors import PyMongoError

from devicehub.db.database import init_db, close_db
from devicehub.models.department import Department
from devicehub.models.user import User, UserRole, MIN_PASSWORD_LENGTH
from devicehub.core.security import get_password_hash

DEFAULT_DEPARTMENT = {"name": "Information Technology", "code": "IT"}


async def create_initial_superuser() -> int:
    """Interactive bootstrap of the first superuser account (and a default department)."""
    print("--- Create Initial Superuser ---")
    try:
        await init_db()
    except PyMongoError as e:
        print(f"Error connecting to database: {e}")
        return 1

    try:
        department = await Department.find_one({"code": DEFAULT_DEPARTMENT["code"]})
        if department is None:
            department = Department(**DEFAULT_DEPARTMENT)
            await department.insert()
            print(f"Created department {department.code}.")

        while True:
            email = input("Enter superuser email: ").strip().lower()
            if email:
                break
            print("Email cannot be empty.")

        if await User.find_one({"email": email}):
            print(f"Error: a user with email '{email}' already exists.")
            return 1

        name = input("Enter full name: ").strip() or "Superuser"

        while True:
            password = getpass("Enter password: ")
            if len(password) < MIN_PASSWORD_LENGTH:
                print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
                continue
            if password != getpass("Confirm password: "):
                print("Passwords do not match. Please try again.")
                continue
            break

        superuser = User(
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
            department_id=department.id,
            role=UserRole.SUPERUSER,
        )
        await superuser.insert()
        print(f"Superuser '{email}' created successfully!")
        return 0
    except PyMongoError as e:
        print(f"Error saving superuser: {e}")
        return 1
    finally:
        close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(create_initial_superuser()))
