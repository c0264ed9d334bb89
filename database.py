# database.py
import os
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv
from paths import DATA_DIR

# Load environment variables from .env
load_dotenv()

logger = logging.getLogger(__name__)

# Make sure the Data directory exists
DATA_DIR.mkdir(exist_ok=True)

# Database URL from .env
database_url = os.getenv('DATABASE_URL', 'sqlite:///./Data/transfers.db')

logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")
logger.info(f"Database URL: {database_url.split('@')[-1]}")

connect_args = {}
if database_url.startswith('sqlite'):
    connect_args["check_same_thread"] = False  # needed for SQLite

engine = create_engine(database_url, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db():
    from Models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")

def reset_db():
    from Models import Base
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
