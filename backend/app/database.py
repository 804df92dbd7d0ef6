"""Database configuration and session management."""

from collections.abc import Generator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import settings


# Base class for ORM models
class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


def _connect_args(database_url: str) -> dict:
    """Per-connection timeouts so every persistence call is bounded."""
    if not database_url.startswith("postgresql"):
        return {}
    timeout = settings.db_statement_timeout_ms
    return {"options": f"-c lock_timeout={timeout} -c statement_timeout={timeout}"}


# Create database engine with connection pooling
# READ COMMITTED is enough for the conditional-update rotation: the row lock
# taken by the first UPDATE makes a concurrent one re-check revoked_at.
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Enable connection health checks
    pool_size=10,  # Number of connections to maintain
    max_overflow=20,  # Maximum number of connections beyond pool_size
    pool_recycle=3600,  # Recycle connections after 1 hour
    echo=False,  # Set to True for SQL query logging in development
    isolation_level="READ COMMITTED",
    connect_args=_connect_args(settings.database_url),
)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading errors after commit
)


def check_connection(bind: Engine = engine) -> None:
    """Fail fast if the database is unreachable.

    Called once from the application lifespan; any exception propagates and
    aborts startup.
    """
    with bind.connect() as conn:
        conn.execute(text("SELECT 1"))


# Dependency for FastAPI routes
def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI routes.

    Yields:
        Session: SQLAlchemy database session

    Example:
        @app.post("/auth/signin")
        def signin(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
