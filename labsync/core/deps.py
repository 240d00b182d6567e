from labsync.core.config import MAX_UPLOAD_BYTES, UPLOAD_DIR
from labsync.db.session import SessionLocal
from labsync.services.file_storage import LocalFileStorage


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage() -> LocalFileStorage:
    return LocalFileStorage(UPLOAD_DIR, MAX_UPLOAD_BYTES)
