from pathlib import Path
from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine, Session
from config import settings

# SQLite connection
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

def create_db_and_tables():
    # Table classes must be imported so they register on SQLModel.metadata
    import apps.users.models  # noqa: F401
    import apps.tracker.models  # noqa: F401

    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
