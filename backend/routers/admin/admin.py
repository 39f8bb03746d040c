from fastapi import APIRouter, Depends, HTTPException, status, Query
from dependencies.rbac import require_admin, require_category_write, require_category_delete
from routers.auth.auth import get_current_user
from routers.products.schemas import (
    CategoryCreate, CategoryUpdate, CategoryResponse, CategoryListResponse
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from config import get_db
from models import Category, Product
from utils.errors import CommerceError, NotFoundError, ValidationFailedError
from utils.response_helpers import category_to_dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def category_to_response(category: Category) -> CategoryResponse:
    """Helper function to convert Category model to CategoryResponse"""
    category_dict = category_to_dict(category)
    return CategoryResponse.model_validate(category_dict)


async def _get_category(db: AsyncSession, category_id: int) -> Category:
    result = await db.execute(
        select(Category).where(Category.id == category_id)
    )
    category = result.scalar_one_or_none()
    if not category:
        raise NotFoundError("Category not found", category_id=category_id)
    return category


# =================
# CATEGORY MANAGEMENT ROUTES
# =================

@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_category_write)  # This will run after get_current_user
):
    """Admin only: Create a new product category"""
    try:
        result = await db.execute(
            select(Category).where(Category.name == category_data.name)
        )
        if result.scalar_one_or_none():
            raise ValidationFailedError("Category name already exists", field="name")

        category = Category(**category_data.model_dump())
        db.add(category)
        await db.commit()

        logger.info(f"Category {category.id} ({category.name}) created by {current_user.user_id}")
        return category_to_response(category)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error creating category: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create category"
        )


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_admin)
):
    """Admin only: List all categories with pagination"""
    try:
        total = await db.scalar(select(func.count(Category.id)))

        offset = (page - 1) * limit
        result = await db.execute(
            select(Category).order_by(Category.name).offset(offset).limit(limit)
        )
        categories = result.scalars().all()

        return CategoryListResponse(
            categories=[category_to_response(category) for category in categories],
            page=page,
            limit=limit,
            total=total or 0
        )

    except Exception as e:
        logger.error(f"Error listing categories: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list categories"
        )


@router.put("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    category_update: CategoryUpdate,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_category_write)
):
    """Admin only: Update category"""
    try:
        category = await _get_category(db, category_id)

        if category_update.name and category_update.name != category.name:
            result = await db.execute(
                select(Category).where(
                    Category.name == category_update.name,
                    Category.id != category_id
                )
            )
            if result.scalar_one_or_none():
                raise ValidationFailedError("Category name already exists", field="name")

        update_data = category_update.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(category, field, value)

        await db.commit()

        return category_to_response(category)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error updating category: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update category"
        )


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_category_delete)
):
    """Admin only: Delete category. Its products stay, uncategorized."""
    try:
        category = await _get_category(db, category_id)

        # Products outlive their category
        await db.execute(
            update(Product)
            .where(Product.category_id == category_id)
            .values(category_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.delete(category)
        await db.commit()

        logger.info(f"Category {category_id} deleted by {current_user.user_id}")
        return {"message": "Category deleted successfully"}

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error deleting category: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete category"
        )
