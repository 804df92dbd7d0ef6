"""Database initialization script with seed data."""

from uuid import uuid4

from sqlalchemy.orm import Session

from app.database import Base, SessionLocal, engine
from app.models import User
from app.services.auth import password_service


def create_tables():
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")


def seed_data(db: Session):
    """Seed the database with one company and two users for local testing."""
    print("\nSeeding database with sample data...")

    company_id = str(uuid4())

    print("Creating users...")
    admin = User(
        company_id=company_id,
        email="admin@example.com",
        password_hash=password_service.hash_password("Password123!"),
        first_name="Ada",
        last_name="Admin",
        roles=["admin"],
        is_active=True,
        email_verified=True,
    )
    member = User(
        company_id=company_id,
        email="john.doe@example.com",
        password_hash=password_service.hash_password("Password123!"),
        first_name="John",
        last_name="Doe",
        roles=["member"],
        is_active=True,
        email_verified=True,
    )
    db.add_all([admin, member])

    db.commit()
    print("Seed data created successfully!")
    print(f"  Company: {company_id}")
    print(f"  Users: {admin.email}, {member.email}")


def init_db():
    """Initialize database with tables and seed data."""
    print("Initializing database...")

    # Create tables
    create_tables()

    # Seed data
    db = SessionLocal()
    try:
        # Check if data already exists
        existing_users = db.query(User).count()
        if existing_users > 0:
            print(f"\nDatabase already has {existing_users} users. Skipping seed data.")
            return

        seed_data(db)
        print("\nDatabase initialization complete!")

    except Exception as e:
        print(f"\nError during database initialization: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
