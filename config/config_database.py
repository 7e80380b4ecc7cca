from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config.setting_database import get_settings


settings = get_settings()

SQLALCHEMY_DATABASE_URL = settings.sqlalchemy_url

if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # Concurrent writers wait on the file lock instead of failing immediately
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=settings.debug
    )
else:
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=settings.debug
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    """Database dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
