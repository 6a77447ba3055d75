from typing import Optional

from videotube.config import settings
from videotube.store.base import DocumentStore
from videotube.store.memory import MemoryStore
from videotube.store.mongo import MongoStore
from videotube.utils.background import BackgroundWriter
from videotube.utils.storage import MediaStorage, R2Storage

store: Optional[DocumentStore] = None
writer: Optional[BackgroundWriter] = None
media_storage: Optional[MediaStorage] = None


def create_store() -> DocumentStore:
    if settings.STORE_BACKEND == "memory":
        return MemoryStore()
    if settings.STORE_BACKEND == "mongo":
        return MongoStore()
    raise ValueError(f"Unknown STORE_BACKEND '{settings.STORE_BACKEND}'")


async def connect_store(
    document_store: Optional[DocumentStore] = None,
    storage: Optional[MediaStorage] = None,
):
    global store, writer, media_storage
    store = document_store or create_store()
    await store.connect()

    media_storage = storage or R2Storage()

    writer = BackgroundWriter()
    writer.start()


async def close_store():
    global store, writer
    if writer:
        await writer.stop()
    if store:
        await store.close()


def get_store() -> DocumentStore:
    return store


def get_writer() -> BackgroundWriter:
    return writer


def get_media_storage() -> MediaStorage:
    return media_storage
