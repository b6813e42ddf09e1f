from sqlmodel import SQLModel, create_engine, Session
from animalitos.config import settings
import os

# SQLite needs its directory to exist
if settings.db_dsn.startswith("sqlite:///./"):
    os.makedirs(os.path.dirname(settings.db_dsn[len("sqlite:///"):]) or ".", exist_ok=True)

engine = create_engine(settings.db_dsn, echo=False)


def init_db(bind=None):
    # import models so SQLModel registers the tables
    from animalitos.db import models  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
