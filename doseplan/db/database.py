from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from doseplan.config import get_settings

settings = get_settings()

DATABASE_URL = settings.database_url
# Railway-style postgres:// URLs
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
