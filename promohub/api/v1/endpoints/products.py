from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from promohub.api.deps import DB, CurrentUser, AdminUser
from promohub.models.product import ProductStatus
from promohub.schemas.product import ProductCreate, ProductUpdate, ProductResponse
from promohub.services.product_service import ProductService

router = APIRouter()


@router.get("", response_model=List[ProductResponse])
async def list_products(
    db: DB,
    current_user: CurrentUser,
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
):
    status_value = status_filter.value if status_filter else None
    return await ProductService(db, current_user.tenant_id).list_products(status_value)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: UUID, db: DB, current_user: CurrentUser):
    return await ProductService(db, current_user.tenant_id).get_product(product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(data: ProductCreate, db: DB, admin: AdminUser):
    return await ProductService(db, admin.tenant_id).create_product(data)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(product_id: UUID, data: ProductUpdate, db: DB, admin: AdminUser):
    """Update catalog fields. Use ``PUT /commissions/products/{id}`` to change the rate."""
    return await ProductService(db, admin.tenant_id).update_product(product_id, data)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: UUID, db: DB, admin: AdminUser):
    await ProductService(db, admin.tenant_id).delete_product(product_id)
