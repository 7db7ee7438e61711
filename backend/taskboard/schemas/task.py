from pydantic import BaseModel, field_serializer
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum

class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    done = "done"

class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    dueDate: Optional[datetime] = None

class TaskUpdate(BaseModel):
    # Status is kept as a plain string so the store can reject it with its own message.
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    dueDate: Optional[datetime] = None

    def to_patch(self) -> dict:
        """Only the keys the client actually sent; an explicit null is kept."""
        return {name: getattr(self, name) for name in self.model_fields_set}

class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    due_date: Optional[datetime] = None
    user_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True

    @field_serializer("due_date", "created_at", "updated_at")
    def serialize_timestamp(self, value: Optional[datetime]):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

class TaskEnvelope(BaseModel):
    message: str
    task: TaskResponse

class TaskListEnvelope(BaseModel):
    message: str
    tasks: List[TaskResponse]

class TaskDeleted(BaseModel):
    message: str
    taskId: int

class DailyCount(BaseModel):
    date: str
    tasks: int

class DailyCompletion(BaseModel):
    date: str
    completionRate: int

class TaskStats(BaseModel):
    total_tasks: int
    by_status: Dict[str, int]
    completion_percentage: int
    overdue_tasks: int
    created_per_day: List[DailyCount]
    completion_rate_per_day: List[DailyCompletion]

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class TaskStatsEnvelope(BaseModel):
    message: str
    stats: TaskStats
