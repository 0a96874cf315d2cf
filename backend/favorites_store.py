from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from errors import Conflict, NotFound

logger = logging.getLogger(__name__)

FAVORITES_COLLECTION = "favorites"
UNIQUE_ID_INDEX = "unique_id"


class Favorite(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    date: Optional[str] = None
    time: Optional[str] = None
    category: Optional[str] = None
    venue: Optional[str] = None
    image: Optional[str] = None


class FavoritesStore:
    """
    CRUD over the favorites collection. One document per event `id`.

    `add` does a lookup before inserting to return a clean 409; the unique
    index created by `ensure_indexes` is what actually prevents duplicates
    when two inserts race past the lookup.
    """

    def __init__(self, collection: Collection):
        self.collection = collection

    def ensure_indexes(self) -> None:
        info = self.collection.index_information()
        meta = info.get(UNIQUE_ID_INDEX)
        if meta and meta.get("unique") and meta.get("key") == [("id", 1)]:
            return
        self.collection.create_index([("id", 1)], name=UNIQUE_ID_INDEX, unique=True)
        logger.info("Ensured unique index on favorites.id")

    def list(self) -> list[Favorite]:
        return [Favorite.model_validate(doc) for doc in self.collection.find({}, {"_id": 0})]

    def add(self, favorite: Favorite) -> Favorite:
        if self.collection.find_one({"id": favorite.id}, {"_id": 1}) is not None:
            raise Conflict()

        doc: dict[str, Any] = favorite.model_dump(exclude_none=True)
        try:
            self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            logger.warning("Duplicate favorite %s rejected by index: %s", favorite.id, getattr(e, "details", None))
            raise Conflict()
        logger.info("Added favorite %s", favorite.id)
        return favorite

    def remove(self, event_id: str) -> None:
        removed = self.collection.find_one_and_delete({"id": event_id})
        if removed is None:
            raise NotFound("Event not found in favorites.")
        logger.info("Removed favorite %s", event_id)
