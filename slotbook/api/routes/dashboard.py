from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_current_provider
from slotbook.api.routes.availability import slot_to_info
from slotbook.api.schemas.dashboard import DailyTrendOut, DashboardAnalytics, DashboardStatsOut, PeriodOut
from slotbook.core.db import get_session
from slotbook.models.provider import Provider
from slotbook.services import analytics_service
from slotbook.services.calendar import day_name, day_of_week
from slotbook.services.working_hours_service import uses_12h_format

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/analytics", response_model=DashboardAnalytics)
async def get_analytics(
    period: str = Query("week", description="week, month or year"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    today: date | None = Query(None, description="Defaults to today in the provider's timezone"),
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> DashboardAnalytics:
    """Booking and slot figures for the current provider over a period."""
    stats = await analytics_service.get_dashboard(
        session, current_provider.id, period, start_date, end_date, today
    )
    use_12h = await uses_12h_format(session, current_provider.id)
    return DashboardAnalytics(
        stats=DashboardStatsOut(
            today_bookings=stats.today_bookings,
            today_trend=stats.today_trend,
            available_slots=stats.available_slots,
            total_slots=stats.total_slots,
            booked_slots=stats.booked_slots,
            total_bookings=stats.total_bookings,
            booking_rate=stats.booking_rate,
        ),
        daily_trend=[
            DailyTrendOut(
                date=d.date,
                day=day_name(day_of_week(d.date))[:3],
                bookings=d.bookings,
                available_slots=d.available_slots,
                total_slots=d.total_slots,
            )
            for d in stats.daily
        ],
        today_slots=[slot_to_info(s, use_12h) for s in stats.today_slots],
        booking_status=stats.status_counts,
        period=PeriodOut(start=stats.start, end=stats.end, today=stats.today),
    )
