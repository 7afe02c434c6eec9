from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from brgy_payroll.core.config import settings

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL)
else:
    # SQLite configuration for local development/testing
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """
    Registers all domain models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    # Import all models to ensure they are registered with Base.metadata before create_all
    from brgy_payroll.models import (  # noqa: F401
        personnel, deduction, loan, overload_pay,
        attendance_deduction, payroll, audit_log
    )
    from brgy_payroll.models.immutability import register_snapshot_guards
    register_snapshot_guards()
    # Perform schema emission
    Base.metadata.create_all(bind=bind or engine)
