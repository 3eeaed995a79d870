# JUAKALI/backend/juakali/database.py

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from juakali.config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)

# SQLite is used in development and tests; it takes no pool sizing
if DATABASE_URL.startswith("sqlite"):
    engine_options = {"connect_args": {"check_same_thread": False}}
else:
    engine_options = {
        "pool_size": 5,  # Permanent connections
        "max_overflow": 10,  # Extra temporary connections
        "pool_pre_ping": True,  # Check the connection is alive before use
    }

try:
    engine = create_engine(DATABASE_URL, echo=False, **engine_options)
except Exception as e:
    logger.error(f"❌ Could not create the database engine: {e}")
    raise

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

Base = declarative_base()


def get_db():
    """
    FastAPI dependency yielding a database session.
    Use in routes with: db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Creates every table declared in the models"""
    # Importing the models registers them on Base.metadata
    from juakali.models import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Tables created/checked")


def drop_tables():
    """Drops every table (USE WITH CARE)"""
    Base.metadata.drop_all(bind=engine)
    logger.warning("⚠️ All tables dropped")


def check_connection():
    """Checks that the database answers"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Database connection error: {e}")
        return False
