from submission_engine.db.session import SessionLocal
from submission_engine.services.media import LocalMediaStorage, MediaService
from submission_engine.services.notifications import LoggingNotifier, Notifier


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_media_service = LocalMediaStorage()
_notifier = LoggingNotifier()


def get_media_service() -> MediaService:
    return _media_service


def get_notifier() -> Notifier:
    return _notifier
