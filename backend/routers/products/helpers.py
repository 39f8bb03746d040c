from fastapi import HTTPException, status, UploadFile
from config import get_supabase_storage, SUPABASE_STORAGE_BUCKET
from models import Product, Category, Listing
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from utils.errors import NotFoundError, ForbiddenError, ValidationFailedError
import uuid
import os
import logging

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
MAX_IMAGE_SIZE = 5 * 1024 * 1024
EDITABLE_FIELDS = {"name", "description", "category_id"}


class ProductHelpers:
    """Product edits and media upload"""

    def __init__(self):
        self._storage = None

    @property
    def storage(self):
        if self._storage is None:
            self._storage = get_supabase_storage()
        return self._storage

    async def get_product(self, db: AsyncSession, product_id: int) -> Product:
        result = await db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found", product_id=product_id)
        return product

    async def ensure_can_edit(self, db: AsyncSession, caller, product: Product) -> None:
        """A product belongs to the sellers listing it"""
        if caller.is_admin:
            return
        owned = await db.scalar(
            select(func.count(Listing.id)).where(
                Listing.product_id == product.id,
                Listing.seller_id == caller.user_id
            )
        )
        if not owned:
            logger.warning(f"User {caller.user_id} tried to edit product {product.id}")
            raise ForbiddenError("You can only edit your own products", product_id=product.id)

    async def update_product(self, db: AsyncSession, caller, product_id: int, changes: dict) -> Product:
        product = await self.get_product(db, product_id)
        await self.ensure_can_edit(db, caller, product)

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationFailedError(f"Unknown fields: {', '.join(sorted(unknown))}")

        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationFailedError("Product name is required", field="name")

        category = None
        if changes.get("category_id") is not None:
            category = await db.get(Category, changes["category_id"])
            if not category:
                raise ValidationFailedError("Category does not exist", field="category_id")

        try:
            if "name" in changes:
                product.name = changes["name"].strip()
            if "description" in changes:
                product.description = changes["description"]
            if "category_id" in changes:
                product.category = category
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Product {product_id} updated by {caller.user_id}: {sorted(changes)}")
        return product

    async def upload_product_image(self, product_id: int, file: UploadFile) -> str:
        """
        Upload a product image to Supabase Storage and return the public URL
        """
        try:
            logger.info(f"Starting image upload for product {product_id}")

            if file.content_type not in ALLOWED_IMAGE_TYPES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"File type {file.content_type} not allowed"
                )

            file_content = await file.read()
            if len(file_content) > MAX_IMAGE_SIZE:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="File size must be less than 5MB"
                )

            await file.seek(0)

            file_extension = os.path.splitext(file.filename)[1] if file.filename else '.jpg'
            unique_filename = f"products/{product_id}/{uuid.uuid4()}{file_extension}"

            try:
                response = self.storage.from_(SUPABASE_STORAGE_BUCKET).upload(
                    path=unique_filename,
                    file=file_content,
                    file_options={"content-type": file.content_type}
                )

                if hasattr(response, 'error') and response.error:
                    logger.error(f"Upload error: {response.error}")
                    raise HTTPException(
                        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail="Failed to upload image"
                    )

                public_url = self.storage.from_(SUPABASE_STORAGE_BUCKET).get_public_url(unique_filename)
                logger.info(f"Uploaded product image: {public_url}")

                return public_url

            except HTTPException:
                raise
            except Exception as upload_error:
                logger.error(f"Upload error: {str(upload_error)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to upload image"
                )

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Unexpected error uploading product image: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to upload image"
            )

    async def delete_product_image(self, image_url: str) -> bool:
        """
        Delete a previously uploaded image from Supabase Storage
        """
        try:
            marker = f"/storage/v1/object/public/{SUPABASE_STORAGE_BUCKET}/"
            if marker not in image_url:
                return False

            file_path = image_url.split(marker, 1)[1]
            self.storage.from_(SUPABASE_STORAGE_BUCKET).remove([file_path])
            return True

        except Exception as e:
            logger.warning(f"Failed to delete product image {image_url}: {str(e)}")
            return False


product_helpers = ProductHelpers()
