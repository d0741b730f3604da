from datetime import date

from pydantic import BaseModel

from slotbook.api.schemas.availability import SlotInfo


class DashboardStatsOut(BaseModel):
    today_bookings: int
    today_trend: int  # today minus yesterday
    available_slots: int
    total_slots: int
    booked_slots: int
    total_bookings: int
    booking_rate: int  # booked share of the period's slots, in percent


class DailyTrendOut(BaseModel):
    date: date
    day: str
    bookings: int
    available_slots: int
    total_slots: int


class PeriodOut(BaseModel):
    start: date
    end: date
    today: date


class DashboardAnalytics(BaseModel):
    stats: DashboardStatsOut
    daily_trend: list[DailyTrendOut]
    today_slots: list[SlotInfo]
    booking_status: dict[str, int]
    period: PeriodOut
