from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence

from .blob_store import BlobStore
from .errors import InvalidField, NotFound
from .gallery import GalleryManager
from .models import utcnow
from .record_store import Kind, Record, RecordStore
from .uploads import ImageUpload
from .validation import clean_text, parse_price

logger = logging.getLogger(__name__)

SINGLE = "single"
MULTI = "multi"


class CatalogService:
    """Catalog CRUD plus the image lifecycle around it.

    `single` items embed one image reference and require a price; `multi`
    items own a gallery of photos and the price is optional. Images are
    stored before the row that references them; if the row write then
    fails, the stored blob is left behind.
    """

    def __init__(self, store: RecordStore, blobs: BlobStore,
                 gallery: Optional[GalleryManager] = None, variant: str = MULTI):
        if variant not in (SINGLE, MULTI):
            raise ValueError(f"unknown catalog variant: {variant}")
        self.store = store
        self.blobs = blobs
        self.gallery = gallery or GalleryManager(store, blobs)
        self.variant = variant

    # ---------- read side ----------

    def _present(self, item: Record, photos: Optional[List[Record]] = None) -> Record:
        out = dict(item)
        if self.variant == SINGLE:
            out["image_url"] = self.blobs.url(item["image_ref"]) if item.get("image_ref") else None
        else:
            out["photos"] = [{**p, "image_url": self.blobs.url(p["image_ref"])} for p in (photos or [])]
        return out

    def list_public(self) -> List[Record]:
        items = self.store.query(Kind.ITEMS)
        if self.variant == SINGLE:
            return [self._present(i) for i in items]
        grouped = self.gallery.photos_by_item()
        return [self._present(i, grouped.get(i["id"], [])) for i in items]

    def search(self, query: Optional[str]) -> List[Record]:
        needle = (query or "").strip().lower()
        items = self.list_public()
        if not needle:
            return items
        return [i for i in items if needle in (i.get("name") or "").lower()]

    def _require(self, item_id: int) -> Record:
        item = self.store.get(Kind.ITEMS, item_id)
        if item is None:
            raise NotFound("Item not found")
        return item

    def get(self, item_id: int) -> Record:
        item = self._require(item_id)
        if self.variant == SINGLE:
            return self._present(item)
        return self._present(item, self.gallery.list_photos(item_id))

    # ---------- write side ----------

    def _create_price(self, raw: Any) -> Optional[float]:
        if clean_text(raw) is None:
            if self.variant == SINGLE:
                raise InvalidField("price", "Name, price, and image are required")
            return None
        price = parse_price(raw)
        if price is None:
            raise InvalidField("price", "Price must be a positive number")
        return price

    def create(self, fields: Dict[str, Any], uploads: Sequence[ImageUpload] = ()) -> int:
        name = clean_text(fields.get("name"))
        if not name:
            raise InvalidField("name", "Name is required")
        price = self._create_price(fields.get("price"))
        if self.variant == SINGLE:
            if len(uploads) != 1:
                raise InvalidField("image", "Exactly one image is required")
        elif not uploads:
            raise InvalidField("images", "At least one image is required")

        row = {
            "name": name,
            "description": clean_text(fields.get("description")),
            "price": price,
        }
        if self.variant == SINGLE:
            u = uploads[0]
            row["image_ref"] = self.blobs.put(u.data, u.filename, u.content_type)
            item_id = self.store.insert(Kind.ITEMS, row)
        else:
            keys = self.gallery.store_uploads(uploads)
            item_id = self.store.insert(Kind.ITEMS, row)
            self.gallery.attach(item_id, keys)
        logger.info("created catalog item %s (%s)", item_id, name)
        return item_id

    def update(self, item_id: int, fields: Dict[str, Any], uploads: Sequence[ImageUpload] = ()) -> None:
        current = self._require(item_id)

        changes: Dict[str, Any] = {}
        name = clean_text(fields.get("name"))
        if name:
            changes["name"] = name
        price = parse_price(fields.get("price"))
        if price is not None:
            changes["price"] = price
        if fields.get("description") is not None:
            changes["description"] = clean_text(fields.get("description"))
        if self.variant == SINGLE and len(uploads) > 1:
            raise InvalidField("image", "Only one image is allowed")
        if not changes and not uploads:
            raise InvalidField("fields", "Nothing to update")

        if self.variant == SINGLE and uploads:
            u = uploads[0]
            changes["image_ref"] = self.blobs.put(u.data, u.filename, u.content_type)
        changes["updated_at"] = utcnow()
        self.store.update(Kind.ITEMS, item_id, changes)

        if self.variant == SINGLE:
            old = current.get("image_ref")
            if uploads and old:
                self.blobs.delete(old)
        elif uploads:
            self.gallery.add_photos(item_id, uploads)
        logger.info("updated catalog item %s (%s)", item_id, ", ".join(sorted(changes)))

    def delete(self, item_id: int) -> None:
        item = self._require(item_id)
        keys: List[str] = []
        if item.get("image_ref"):
            keys.append(item["image_ref"])
        keys.extend(self.gallery.blob_keys(item_id))
        for key in keys:
            if not self.blobs.delete(key):
                logger.warning("blob %s of item %s was already gone", key, item_id)
        # photo rows go with the item
        self.store.delete(Kind.ITEMS, item_id)
        logger.info("deleted catalog item %s and %d blob(s)", item_id, len(keys))
