from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import Category
from routers.auth.auth import get_current_user
from dependencies.rbac import require_product_write
from utils.errors import CommerceError
from utils.response_helpers import safe_model_validate, category_to_dict, product_to_dict
from .helpers import product_helpers
from .schemas import CategoryResponse, ProductUpdate, ProductResponse, ProductImageUpload
from typing import List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


# =================
# CATEGORY ROUTES (PUBLIC)
# =================

@router.get("/categories", response_model=List[CategoryResponse])
async def get_categories(
    db: AsyncSession = Depends(get_db)
):
    """Get all categories for listing creation and filtering"""
    try:
        result = await db.execute(select(Category).order_by(Category.name))
        categories = result.scalars().all()
        return [safe_model_validate(CategoryResponse, category_to_dict(category)) for category in categories]

    except Exception as e:
        logger.error(f"Error getting categories: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get categories"
        )


# =================
# PRODUCT ROUTES
# =================

@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_product_write)
):
    """Edit name, description or category of a product the caller lists"""
    try:
        product = await product_helpers.update_product(
            db, current_user, product_id, product_data.model_dump(exclude_unset=True)
        )
        return safe_model_validate(ProductResponse, product_to_dict(product))

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error updating product {product_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update product"
        )


@router.post("/{product_id}/upload-image", response_model=ProductImageUpload)
async def upload_product_image(
    product_id: int,
    file: UploadFile = File(..., description="Product image file (JPEG, PNG, GIF, or WebP, max 5MB)"),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_product_write)
):
    """Upload a product image; only the returned URL is stored"""
    try:
        product = await product_helpers.get_product(db, product_id)
        await product_helpers.ensure_can_edit(db, current_user, product)

        image_url = await product_helpers.upload_product_image(product.id, file)

        previous_url = product.image_url
        product.image_url = image_url
        await db.commit()

        if previous_url:
            await product_helpers.delete_product_image(previous_url)

        return ProductImageUpload(
            image_url=image_url,
            message="Image uploaded successfully"
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error uploading product image: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload product image"
        )
