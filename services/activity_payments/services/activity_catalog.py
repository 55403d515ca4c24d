"""Consulta de actividades y su configuración de precio"""
from decimal import Decimal
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.database.models import Activity
from services.activity_payments.exceptions import ActivityNotFound
from services.activity_payments.models.pricing import ActivityPricingConfig


class ActivityCatalog:
    """Lectura de actividades (la configuración se administra en otro módulo)"""

    @staticmethod
    async def get_activity(db: AsyncSession, activity_id: int) -> Activity:
        stmt = (
            select(Activity)
            .options(selectinload(Activity.park))
            .where(Activity.id == activity_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        activity = result.scalar_one_or_none()
        if not activity:
            raise ActivityNotFound()
        return activity

    @staticmethod
    def to_pricing_config(activity: Activity) -> ActivityPricingConfig:
        return ActivityPricingConfig(
            activity_id=activity.id,
            title=activity.title,
            base_price=_decimal_or(activity.price, Decimal("0")),
            is_free=bool(activity.is_free),
            is_price_random=bool(activity.is_price_random),
            min_price=_decimal_or(activity.min_price, Decimal("0")),
            max_price=_decimal_or(activity.max_price, Decimal("999999")),
            discount_seniors=activity.discount_seniors or 0,
            discount_students=activity.discount_students or 0,
            discount_families=activity.discount_families or 0,
            discount_disability=activity.discount_disability or 0,
            discount_early_bird=activity.discount_early_bird or 0,
            discount_early_bird_deadline=activity.discount_early_bird_deadline,
            requires_approval=bool(activity.requires_approval),
        )

    async def get_pricing_config(self, db: AsyncSession, activity_id: int) -> ActivityPricingConfig:
        activity = await self.get_activity(db, activity_id)
        return self.to_pricing_config(activity)


def _decimal_or(value: Optional[Decimal], default: Decimal) -> Decimal:
    if value is None:
        return default
    return Decimal(str(value))
