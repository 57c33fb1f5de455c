"""
Affiliate Onboarding Service

Handles the affiliate invite lifecycle:
- Invite a prospective affiliate to a set of products
- Accept an invite (creates the affiliate account and binds the ledger)
- List a tenant's affiliates with their current tier
"""

import asyncio
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.config import settings
from promohub.core.exceptions import (
    NotFoundError,
    ConflictError,
    ValidationFailedError,
    AuthenticationError,
)
from promohub.core.security import get_password_hash, verify_password
from promohub.database import with_transaction
from promohub.models.affiliate import AffiliateInvite, InviteStatus
from promohub.models.commission import AffiliateDetails, AffiliateStatus, CommissionTier
from promohub.models.tenant import Tenant
from promohub.models.tracking import TrackingLink
from promohub.models.user import User, UserRole
from promohub.schemas.affiliate import AffiliateInviteCreate, AcceptInviteRequest, AffiliateUpdate
from promohub.services.commission_engine import CommissionEngine
from promohub.services.email_service import EmailService
from promohub.services.product_service import ProductService

logger = logging.getLogger(__name__)


class AffiliateService:
    """
    Service for affiliate onboarding.

    ``tenant_id`` may be None for invite acceptance, where the tenant is
    taken from the invite the token points to.
    """

    def __init__(
        self,
        db: AsyncSession,
        tenant_id: Optional[uuid.UUID] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.tenant_id = tenant_id
        self.email_service = email_service or EmailService.from_settings()

    # ========================================================================
    # Invite
    # ========================================================================

    async def invite(
        self,
        data: AffiliateInviteCreate,
        invited_by: Optional[uuid.UUID] = None,
    ) -> Tuple[AffiliateInvite, bool]:
        """
        Create an invite with ledger placeholders and email it.

        Returns:
            Tuple of (invite, email_sent). A failed email does not fail the invite.
        """
        flags = {}
        for item in data.products:
            flags[item.product_id] = item.use_product_commission
        product_ids = list(flags)

        products = await ProductService(self.db, self.tenant_id).get_products(product_ids)
        engine = CommissionEngine(self.db, self.tenant_id)
        await engine.ensure_default_tier()

        invite = AffiliateInvite(
            tenant_id=self.tenant_id,
            email=data.email.lower(),
            token=secrets.token_urlsafe(32),
            product_ids=[str(pid) for pid in product_ids],
            status=InviteStatus.PENDING.value,
            invited_by=invited_by,
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.INVITE_EXPIRE_DAYS),
        )
        self.db.add(invite)
        await self.db.flush()

        await engine.create_invite_ledger_rows(invite, products, flags)
        logger.info(f"Invited {invite.email} to {len(products)} product(s) for tenant {self.tenant_id}")

        email_sent = await self._send_invite_email(invite, [p.name for p in products], data.message)
        return invite, email_sent

    async def _send_invite_email(
        self,
        invite: AffiliateInvite,
        product_names: List[str],
        message: Optional[str],
    ) -> bool:
        tenant = await self.db.get(Tenant, self.tenant_id)
        program_name = tenant.name if tenant else settings.APP_NAME
        invite_url = f"{settings.FRONTEND_URL}/affiliate/accept?token={invite.token}"

        sent = await asyncio.to_thread(
            self.email_service.send_affiliate_invite_email,
            invite.email,
            invite_url,
            program_name,
            product_names,
            settings.INVITE_EXPIRE_DAYS,
            message,
        )
        if not sent:
            logger.warning(f"Invite {invite.id} created but email to {invite.email} was not sent")
        return sent

    # ========================================================================
    # Accept
    # ========================================================================

    async def accept(self, data: AcceptInviteRequest) -> Tuple[User, List[TrackingLink]]:
        """
        Accept an invite.

        The invite is claimed with a conditional update, so of two
        concurrent acceptances only one proceeds. Account creation, tier
        assignment and ledger binding commit together.

        Raises:
            NotFoundError: unknown token
            ValidationFailedError: invite expired
            ConflictError: invite already accepted
        """
        result = await self.db.execute(
            select(AffiliateInvite).where(AffiliateInvite.token == data.token)
        )
        invite = result.scalar_one_or_none()
        if not invite:
            raise NotFoundError("Invite not found")
        if self.tenant_id is not None and invite.tenant_id != self.tenant_id:
            raise NotFoundError("Invite not found")

        if invite.status == InviteStatus.ACCEPTED.value:
            raise ConflictError("Invite has already been accepted")
        if invite.status == InviteStatus.EXPIRED.value or invite.is_expired():
            raise ValidationFailedError("Invite has expired")

        self.tenant_id = invite.tenant_id
        engine = CommissionEngine(self.db, self.tenant_id)
        now = datetime.now(timezone.utc)

        async with with_transaction(self.db):
            claim = await self.db.execute(
                update(AffiliateInvite)
                .where(
                    AffiliateInvite.id == invite.id,
                    AffiliateInvite.status == InviteStatus.PENDING.value,
                )
                .values(status=InviteStatus.ACCEPTED.value, accepted_at=now)
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount != 1:
                raise ConflictError("Invite has already been accepted")

            user = await self._resolve_affiliate_user(invite, data)
            await self._ensure_affiliate_details(engine, user)
            links = await engine.bind_invite(invite, user)

            invite.status = InviteStatus.ACCEPTED.value
            invite.accepted_at = now
            invite.accepted_by = user.id

        logger.info(f"Invite {invite.id} accepted by {user.email}")
        return user, links

    async def _resolve_affiliate_user(self, invite: AffiliateInvite, data: AcceptInviteRequest) -> User:
        result = await self.db.execute(select(User).where(User.email == invite.email))
        user = result.scalar_one_or_none()

        if user:
            if user.tenant_id != invite.tenant_id or user.role != UserRole.AFFILIATE.value:
                raise ConflictError("Email is already registered")
            if not verify_password(data.password, user.password_hash):
                raise AuthenticationError("Invalid credentials for existing account")
            return user

        user = User(
            tenant_id=invite.tenant_id,
            email=invite.email,
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=UserRole.AFFILIATE.value,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def _ensure_affiliate_details(self, engine: CommissionEngine, user: User) -> AffiliateDetails:
        result = await self.db.execute(
            select(AffiliateDetails).where(
                AffiliateDetails.tenant_id == self.tenant_id,
                AffiliateDetails.user_id == user.id,
            )
        )
        details = result.scalar_one_or_none()
        if details:
            return details

        tier = await engine.ensure_default_tier()
        details = AffiliateDetails(
            tenant_id=self.tenant_id,
            user_id=user.id,
            current_tier_id=tier.id,
            referral_code=secrets.token_hex(4).upper(),
            social_media={},
            promotional_methods=[],
        )
        self.db.add(details)
        await self.db.flush()
        return details

    # ========================================================================
    # Listing
    # ========================================================================

    async def list_affiliates(self) -> List[dict]:
        result = await self.db.execute(
            select(User, AffiliateDetails, CommissionTier)
            .outerjoin(
                AffiliateDetails,
                (AffiliateDetails.user_id == User.id) & (AffiliateDetails.tenant_id == User.tenant_id),
            )
            .outerjoin(CommissionTier, CommissionTier.id == AffiliateDetails.current_tier_id)
            .where(
                User.tenant_id == self.tenant_id,
                User.role == UserRole.AFFILIATE.value,
            )
            .order_by(User.created_at.asc())
        )
        return [
            {
                "id": user.id,
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "is_active": user.is_active,
                "status": details.status if details else None,
                "current_tier_id": details.current_tier_id if details else None,
                "tier_name": tier.tier_name if tier else None,
                "created_at": user.created_at,
            }
            for user, details, tier in result.all()
        ]

    # ========================================================================
    # Profile & approval
    # ========================================================================

    async def _get_affiliate_row(self, user_id: uuid.UUID) -> Tuple[User, AffiliateDetails, Optional[CommissionTier]]:
        result = await self.db.execute(
            select(User, AffiliateDetails, CommissionTier)
            .join(
                AffiliateDetails,
                (AffiliateDetails.user_id == User.id) & (AffiliateDetails.tenant_id == User.tenant_id),
            )
            .outerjoin(CommissionTier, CommissionTier.id == AffiliateDetails.current_tier_id)
            .where(
                User.id == user_id,
                User.tenant_id == self.tenant_id,
                User.role == UserRole.AFFILIATE.value,
            )
        )
        row = result.one_or_none()
        if not row:
            raise NotFoundError("Affiliate not found")
        return row

    async def get_affiliate(self, user_id: uuid.UUID) -> dict:
        """Profile, approval state, current tier and tracking links of one affiliate."""
        user, details, tier = await self._get_affiliate_row(user_id)

        links = await self.db.execute(
            select(TrackingLink)
            .where(
                TrackingLink.tenant_id == self.tenant_id,
                TrackingLink.affiliate_id == user.id,
            )
            .order_by(TrackingLink.created_at.asc())
        )

        return {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "is_active": user.is_active,
            "status": details.status,
            "current_tier_id": details.current_tier_id,
            "tier_name": tier.tier_name if tier else None,
            "created_at": user.created_at,
            "referral_code": details.referral_code,
            "website_url": details.website_url,
            "social_media": details.social_media or {},
            "promotional_methods": details.promotional_methods or [],
            "approved_by": details.approved_by,
            "approved_at": details.approved_at,
            "tracking_links": list(links.scalars().all()),
        }

    async def update_affiliate(self, user_id: uuid.UUID, data: AffiliateUpdate) -> dict:
        """Apply the profile fields that were sent."""
        user, details, _ = await self._get_affiliate_row(user_id)
        changes = data.model_dump(exclude_unset=True)

        for field in ("first_name", "last_name"):
            if field in changes and changes[field] is not None:
                setattr(user, field, changes.pop(field))
            else:
                changes.pop(field, None)
        for field, value in changes.items():
            if value is not None:
                setattr(details, field, value)

        await self.db.flush()
        logger.info(f"Updated affiliate profile {user.id}")
        return await self.get_affiliate(user.id)

    async def approve(self, user_id: uuid.UUID, approved_by: uuid.UUID) -> dict:
        """Move a pending affiliate to active."""
        await self._transition(
            user_id,
            AffiliateStatus.ACTIVE,
            approved_by=approved_by,
            approved_at=datetime.now(timezone.utc),
        )
        logger.info(f"Affiliate {user_id} approved by {approved_by}")
        return await self.get_affiliate(user_id)

    async def reject(self, user_id: uuid.UUID) -> dict:
        """Move a pending affiliate to rejected."""
        await self._transition(user_id, AffiliateStatus.REJECTED)
        logger.info(f"Affiliate {user_id} rejected")
        return await self.get_affiliate(user_id)

    async def _transition(self, user_id: uuid.UUID, new_status: AffiliateStatus, **values) -> None:
        _, details, _ = await self._get_affiliate_row(user_id)

        # Only a pending profile moves; a concurrent decision sees rowcount 0
        result = await self.db.execute(
            update(AffiliateDetails)
            .where(
                AffiliateDetails.id == details.id,
                AffiliateDetails.status == AffiliateStatus.PENDING.value,
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                "Affiliate is not pending approval",
                details={"status": details.status},
            )
        await self.db.refresh(details)


async def expire_stale_invites(db: AsyncSession) -> int:
    """Mark pending invites past their expiry as expired. Returns the count."""
    result = await db.execute(
        update(AffiliateInvite)
        .where(
            AffiliateInvite.status == InviteStatus.PENDING.value,
            AffiliateInvite.expires_at <= datetime.now(timezone.utc),
        )
        .values(status=InviteStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
