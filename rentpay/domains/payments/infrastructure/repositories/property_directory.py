"""
Property Directory Implementation

Read-only view over the `properties` and `users` tables maintained by the
property/user CRUD service.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.domains.payments.application.dto import PropertySnapshot, TenantSnapshot
from rentpay.domains.payments.application.ports import IPropertyDirectory
from rentpay.domains.payments.infrastructure.persistence.sqlalchemy.models import PropertyModel, UserModel


class SQLAlchemyPropertyDirectory(IPropertyDirectory):
    """Snapshot reads of properties and users. Never writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_property(self, property_id: str) -> PropertySnapshot | None:
        result = await self.session.execute(select(PropertyModel).where(PropertyModel.id == property_id))
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return PropertySnapshot(
            id=model.id,
            name=model.name,
            code=model.code,
            rent_amount=Decimal(model.rent_amount or 0),
            owner_id=model.owner_id,
            paybill=model.paybill or "",
            account_number=model.account_number or "",
        )

    async def get_tenant(self, tenant_id: str) -> TenantSnapshot | None:
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == tenant_id, UserModel.role == "tenant")
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return TenantSnapshot(id=model.id, name=model.name, linked_property_id=model.linked_property_id)

    async def get_user_push_token(self, user_id: str) -> str | None:
        result = await self.session.execute(select(UserModel.fcm_token).where(UserModel.id == user_id))
        return result.scalar_one_or_none()
