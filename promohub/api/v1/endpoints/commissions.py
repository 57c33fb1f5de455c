"""API endpoints for commission tiers, rules and product rates."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, status

from promohub.api.deps import DB, CurrentUser, AdminUser
from promohub.schemas.commission import (
    CommissionTierCreate,
    CommissionTierUpdate,
    CommissionTierResponse,
    CommissionRuleCreate,
    CommissionRuleUpdate,
    CommissionRuleResponse,
    ProductRateUpdate,
    ProductRateResponse,
    ProductRateUpdateResponse,
)
from promohub.services.commission_engine import CommissionEngine
from promohub.services.commission_service import CommissionService
from promohub.services.product_service import ProductService

router = APIRouter()


# ==================== Commission Tiers ====================

@router.get("/tiers", response_model=List[CommissionTierResponse])
async def list_tiers(db: DB, current_user: CurrentUser):
    """List commission tiers, lowest ``min_sales`` first."""
    return await CommissionService(db, current_user.tenant_id).list_tiers()


@router.post("/tiers", response_model=CommissionTierResponse, status_code=status.HTTP_201_CREATED)
async def create_tier(data: CommissionTierCreate, db: DB, admin: AdminUser):
    return await CommissionService(db, admin.tenant_id).create_tier(data)


@router.put("/tiers/{tier_id}", response_model=CommissionTierResponse)
async def update_tier(tier_id: UUID, data: CommissionTierUpdate, db: DB, admin: AdminUser):
    return await CommissionService(db, admin.tenant_id).update_tier(tier_id, data)


@router.delete("/tiers/{tier_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tier(tier_id: UUID, db: DB, admin: AdminUser):
    await CommissionService(db, admin.tenant_id).delete_tier(tier_id)


# ==================== Commission Rules ====================

@router.get("/rules", response_model=List[CommissionRuleResponse])
async def list_rules(db: DB, current_user: CurrentUser):
    return await CommissionService(db, current_user.tenant_id).list_rules()


@router.get("/rules/active", response_model=List[CommissionRuleResponse])
async def list_active_rules(db: DB, current_user: CurrentUser):
    """Rules that are active and inside their validity window right now."""
    return await CommissionService(db, current_user.tenant_id).active_rules()


@router.post("/rules", response_model=CommissionRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(data: CommissionRuleCreate, db: DB, admin: AdminUser):
    return await CommissionService(db, admin.tenant_id).create_rule(data)


@router.put("/rules/{rule_id}", response_model=CommissionRuleResponse)
async def update_rule(rule_id: UUID, data: CommissionRuleUpdate, db: DB, admin: AdminUser):
    return await CommissionService(db, admin.tenant_id).update_rule(rule_id, data)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(rule_id: UUID, db: DB, admin: AdminUser):
    await CommissionService(db, admin.tenant_id).delete_rule(rule_id)


# ==================== Product Rates ====================

@router.get("/products", response_model=List[ProductRateResponse])
async def list_product_rates(db: DB, current_user: CurrentUser):
    """Products with their own commission rates."""
    return await ProductService(db, current_user.tenant_id).list_products()


@router.put("/products/{product_id}", response_model=ProductRateUpdateResponse)
async def update_product_rate(product_id: UUID, data: ProductRateUpdate, db: DB, admin: AdminUser):
    """
    Change a product's own rate.

    Every ledger row for the product gets the new product snapshot; rows
    paid at the product rate also get the new final commission.
    """
    engine = CommissionEngine(db, admin.tenant_id)
    product, refreshed, changed = await engine.update_product_rate(product_id, data.commission_percent)
    return ProductRateUpdateResponse(
        product=ProductRateResponse.model_validate(product),
        ledger_rows_refreshed=refreshed,
        final_commissions_changed=changed,
    )
