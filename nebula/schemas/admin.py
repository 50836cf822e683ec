from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import List

from nebula.schemas.ticket import TicketResponse


class DashboardStats(BaseModel):
    total_tickets: int
    active_tickets: int
    used_tickets: int
    cancelled_tickets: int
    total_revenue: float
    todays_sales: int
    monthly_revenue: float
    recent_tickets: List[TicketResponse]

    class Config:
        alias_generator = to_camel
        populate_by_name = True
