from __future__ import annotations
from typing import Optional, List
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from pydantic import BaseModel

from .auth import Principal, require_admin
from .catalog_service import CatalogService, SINGLE
from .gallery import GalleryManager
from .uploads import read_image_uploads


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_gallery(request: Request) -> GalleryManager:
    return request.app.state.catalog.gallery


class HoodieOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: Optional[float]
    imageUrl: Optional[str]
    createdAt: str
    updatedAt: str


class PhotoOut(BaseModel):
    id: int
    imageUrl: str
    isPrimary: bool
    sortOrder: int


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: Optional[float]
    images: List[str]
    photoIds: List[int]
    photos: List[PhotoOut]
    createdAt: str
    updatedAt: str


def hoodie_out(item: dict) -> HoodieOut:
    return HoodieOut(
        id=item["id"], name=item["name"], description=item.get("description"),
        price=item.get("price"), imageUrl=item.get("image_url"),
        createdAt=item["created_at"], updatedAt=item["updated_at"],
    )


def product_out(item: dict) -> ProductOut:
    photos = [
        PhotoOut(id=p["id"], imageUrl=p["image_url"], isPrimary=bool(p["is_primary"]), sortOrder=p["sort_order"])
        for p in item.get("photos", [])
    ]
    return ProductOut(
        id=item["id"], name=item["name"], description=item.get("description"),
        price=item.get("price"),
        images=[p.imageUrl for p in photos], photoIds=[p.id for p in photos], photos=photos,
        createdAt=item["created_at"], updatedAt=item["updated_at"],
    )


def build_router(prefix: str, variant: str, label: str) -> APIRouter:
    """Catalog routes; `single` serves hoodies, `multi` serves gallery products."""
    router = APIRouter(prefix=prefix, tags=["catalog"])
    present = hoodie_out if variant == SINGLE else product_out
    out_model = HoodieOut if variant == SINGLE else ProductOut

    @router.get("", response_model=List[out_model])
    def list_items(q: Optional[str] = Query(None), catalog: CatalogService = Depends(get_catalog)):
        return [present(i) for i in catalog.search(q)]

    @router.get("/{item_id}", response_model=out_model)
    def get_item(item_id: int, catalog: CatalogService = Depends(get_catalog)):
        return present(catalog.get(item_id))

    @router.post("")
    async def create_item(request: Request,
                          name: Optional[str] = Form(None),
                          description: Optional[str] = Form(None),
                          price: Optional[str] = Form(None),
                          image: Optional[UploadFile] = File(None),
                          images: Optional[List[UploadFile]] = File(None),
                          catalog: CatalogService = Depends(get_catalog),
                          admin: Principal = Depends(require_admin)):
        uploads = await read_image_uploads([image, *(images or [])], request.app.state.settings)
        item_id = catalog.create({"name": name, "description": description, "price": price}, uploads)
        return {"message": f"{label} added", "id": item_id}

    @router.patch("/{item_id}")
    async def update_item(item_id: int, request: Request,
                          name: Optional[str] = Form(None),
                          description: Optional[str] = Form(None),
                          price: Optional[str] = Form(None),
                          image: Optional[UploadFile] = File(None),
                          images: Optional[List[UploadFile]] = File(None),
                          catalog: CatalogService = Depends(get_catalog),
                          admin: Principal = Depends(require_admin)):
        uploads = await read_image_uploads([image, *(images or [])], request.app.state.settings)
        catalog.update(item_id, {"name": name, "description": description, "price": price}, uploads)
        return {"message": f"{label} updated"}

    @router.delete("/{item_id}")
    def delete_item(item_id: int, catalog: CatalogService = Depends(get_catalog),
                    admin: Principal = Depends(require_admin)):
        catalog.delete(item_id)
        return {"message": f"{label} deleted"}

    if variant == SINGLE:
        return router

    # ---------- gallery ----------

    @router.post("/{item_id}/photos", response_model=List[PhotoOut])
    async def add_photos(item_id: int, request: Request,
                         images: List[UploadFile] = File(...),
                         gallery: GalleryManager = Depends(get_gallery),
                         admin: Principal = Depends(require_admin)):
        uploads = await read_image_uploads(images, request.app.state.settings)
        added = gallery.add_photos(item_id, uploads)
        return [
            PhotoOut(id=p["id"], imageUrl=gallery.blobs.url(p["image_ref"]),
                     isPrimary=bool(p["is_primary"]), sortOrder=p["sort_order"])
            for p in added
        ]

    @router.delete("/{item_id}/photos/{photo_id}")
    def remove_photo(item_id: int, photo_id: int, gallery: GalleryManager = Depends(get_gallery),
                     admin: Principal = Depends(require_admin)):
        gallery.remove_photo(item_id, photo_id)
        return {"message": "Photo deleted"}

    return router
