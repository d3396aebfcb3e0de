"""
Database engine construction for the SQL-backed message store.
"""
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from corpchannel.core.logging import get_logger

logger = get_logger(__name__)

# Create base class for models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL, preparing SQLite files as needed."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        
        # Extract file path from sqlite:///./path/to/db.db and ensure directory exists
        db_path = database_url.replace("sqlite:///", "")
        if db_path.startswith("./"):
            db_path = db_path[2:]
        if db_path and db_path != ":memory:":
            db_dir = Path(db_path).parent
            if not db_dir.exists():
                db_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created database directory: {db_dir}")
    
    engine = create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,
        pool_pre_ping=True,
    )
    
    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    
    logger.info("Database engine created", extra={"extra_data": {"database_url": database_url}})
    return engine


def init_db(engine: Engine) -> None:
    """Create all tables registered on Base."""
    from corpchannel.models import message  # noqa: F401 - Import to register models
    
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def check_db_connection(engine: Engine) -> bool:
    """Check if database is reachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
