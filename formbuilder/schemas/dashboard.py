import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_forms: int
    total_responses: int
    average_responses_per_form: float
    completion_rate: float


class Activity(BaseModel):
    id: str
    type: Literal["form_created", "response_received"]
    form_name: str
    timestamp: datetime
    response_count: int | None = None


class TopForm(BaseModel):
    id: uuid.UUID
    name: str
    response_count: int


class DashboardResponse(BaseModel):
    stats: DashboardStats
    activities: list[Activity]
    top_forms: list[TopForm]
