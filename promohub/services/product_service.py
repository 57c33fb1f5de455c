import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.exceptions import NotFoundError, ConflictError, ValidationFailedError
from promohub.models.product import Product
from promohub.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


class ProductService:
    """Tenant product catalog"""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def list_products(self, status: Optional[str] = None) -> List[Product]:
        query = select(Product).where(Product.tenant_id == self.tenant_id)
        if status:
            query = query.where(Product.status == status)
        result = await self.db.execute(query.order_by(Product.name.asc()))
        return list(result.scalars().all())

    async def get_product(self, product_id: uuid.UUID) -> Product:
        result = await self.db.execute(
            select(Product).where(
                Product.id == product_id,
                Product.tenant_id == self.tenant_id,
            )
        )
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def get_products(self, product_ids: List[uuid.UUID]) -> List[Product]:
        """Fetch several products, failing if any is missing from this tenant."""
        result = await self.db.execute(
            select(Product).where(
                Product.id.in_(product_ids),
                Product.tenant_id == self.tenant_id,
            )
        )
        found = {product.id: product for product in result.scalars().all()}
        missing = [str(pid) for pid in product_ids if pid not in found]
        if missing:
            raise NotFoundError("Product not found", details={"product_ids": missing})
        return [found[pid] for pid in product_ids]

    async def create_product(self, data: ProductCreate) -> Product:
        duplicate = await self.db.scalar(
            select(func.count(Product.id)).where(
                Product.tenant_id == self.tenant_id,
                Product.sku_code == data.sku_code,
            )
        )
        if duplicate:
            raise ConflictError(f"Product with SKU {data.sku_code} already exists")

        values = data.model_dump()
        values["status"] = data.status.value
        product = Product(tenant_id=self.tenant_id, **values)
        self.db.add(product)
        await self.db.flush()
        logger.info(f"Created product {product.sku_code} for tenant {self.tenant_id}")
        return product

    async def update_product(self, product_id: uuid.UUID, data: ProductUpdate) -> Product:
        """
        Update catalog fields. The commission rate is changed through the
        commission engine so ledger rows follow it.
        """
        product = await self.get_product(product_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("description", "category"):
                raise ValidationFailedError(f"{field} cannot be null")
            if hasattr(value, "value"):
                value = value.value
            setattr(product, field, value)
        await self.db.flush()
        return product

    async def delete_product(self, product_id: uuid.UUID) -> None:
        product = await self.get_product(product_id)
        await self.db.delete(product)
        await self.db.flush()
        logger.info(f"Deleted product {product_id} for tenant {self.tenant_id}")
