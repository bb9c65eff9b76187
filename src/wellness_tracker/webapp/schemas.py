from typing import Optional, Union

from pydantic import BaseModel, Field

# Ratings arrive as numbers from some clients and as strings from others
RatingValue = Optional[Union[int, str]]


class EventIn(BaseModel):
    event_type: str = Field(min_length=1, max_length=120)
    event_name: str = Field(min_length=1, max_length=200)
    event_date: str = Field(min_length=1, max_length=40)


class EventUpdate(BaseModel):
    event_type: Optional[str] = Field(default=None, min_length=1, max_length=120)
    event_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    event_date: Optional[str] = Field(default=None, min_length=1, max_length=40)


class RecordIn(BaseModel):
    """Fields shared by every record kind. The event is given by id or by name."""
    employee_no: Optional[str] = Field(default=None, max_length=60)
    employee_name: Optional[str] = Field(default=None, max_length=200)
    event_id: Optional[int] = None
    event_name: Optional[str] = Field(default=None, max_length=200)


class RegistrationIn(RecordIn):
    department: Optional[str] = Field(default=None, max_length=120)


class AttendanceIn(RecordIn):
    department: Optional[str] = Field(default=None, max_length=120)
    mode: Optional[str] = None


class EvaluationIn(RecordIn):
    objectives_met: RatingValue = None
    relevance: RatingValue = None
    venue: RatingValue = None
    activity: RatingValue = None
    value_time_spent: RatingValue = None
    overall_rating: RatingValue = None
    topic_clear_effective: RatingValue = None
    answered_questions: RatingValue = None
    presentation_materials: RatingValue = None
    session_helpful: Optional[str] = None
