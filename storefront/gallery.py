from __future__ import annotations
import logging
from collections import defaultdict
from typing import Dict, List, Sequence

from .blob_store import BlobStore
from .errors import InvalidField, NotFound
from .record_store import Kind, Record, RecordStore
from .uploads import ImageUpload

logger = logging.getLogger(__name__)


class GalleryManager:
    """Ordered, individually deletable photos owned by a catalog item.

    New photos are appended after the current highest sort_order. The first
    photo added to an empty gallery is the primary one. Removing a photo
    leaves the others untouched: gaps in sort_order stay and primary status
    is not handed on.
    """

    def __init__(self, store: RecordStore, blobs: BlobStore):
        self.store = store
        self.blobs = blobs

    def _require_item(self, item_id: int) -> Record:
        item = self.store.get(Kind.ITEMS, item_id)
        if item is None:
            raise NotFound("Product not found")
        return item

    def list_photos(self, item_id: int) -> List[Record]:
        return self.store.query(Kind.PHOTOS, {"item_id": item_id})

    def photos_by_item(self) -> Dict[int, List[Record]]:
        grouped: Dict[int, List[Record]] = defaultdict(list)
        for photo in self.store.query(Kind.PHOTOS):
            grouped[photo["item_id"]].append(photo)
        return grouped

    def blob_keys(self, item_id: int) -> List[str]:
        return [p["image_ref"] for p in self.list_photos(item_id)]

    def store_uploads(self, uploads: Sequence[ImageUpload]) -> List[str]:
        return [self.blobs.put(u.data, u.filename, u.content_type) for u in uploads]

    def attach(self, item_id: int, keys: Sequence[str]) -> List[Record]:
        """Append photo rows for blobs that are already stored."""
        existing = self.list_photos(item_id)
        next_order = max((p["sort_order"] for p in existing), default=0) + 1
        first_ever = not existing
        added: List[Record] = []
        for i, key in enumerate(keys):
            photo_id = self.store.insert(Kind.PHOTOS, {
                "item_id": item_id,
                "image_ref": key,
                "is_primary": first_ever and i == 0,
                "sort_order": next_order + i,
            })
            added.append(self.store.get(Kind.PHOTOS, photo_id))
        return added

    def add_photos(self, item_id: int, uploads: Sequence[ImageUpload]) -> List[Record]:
        self._require_item(item_id)
        if not uploads:
            raise InvalidField("images", "At least one image is required")
        added = self.attach(item_id, self.store_uploads(uploads))
        logger.info("added %d photo(s) to item %s", len(added), item_id)
        return added

    def remove_photo(self, item_id: int, photo_id: int) -> None:
        photo = self.store.get(Kind.PHOTOS, photo_id)
        if photo is None or photo["item_id"] != item_id:
            raise NotFound("Photo not found")
        if not self.blobs.delete(photo["image_ref"]):
            logger.warning("blob %s for photo %s was already gone", photo["image_ref"], photo_id)
        self.store.delete(Kind.PHOTOS, photo_id)
        logger.info("removed photo %s from item %s", photo_id, item_id)
