from submission_engine.db.base import Base
from submission_engine.db.session import engine


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
