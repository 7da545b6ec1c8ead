"""Development paths and the interventions scheduled inside them."""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from competency_kernel.models.scheduling import Interval


class DevelopmentPath(BaseModel):
    """A time-boxed development path assigned to employees or groups."""

    id: str
    name: str
    description: Optional[str] = None       # the API stores "" as null
    start_date: Optional[str] = None        # ISO-8601 day or timestamp, None = not scheduled
    end_date: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start_date, end=self.end_date)


class Intervention(BaseModel):
    """
    A learning/development intervention inside a path.

    Stored rows name the title `intervention_name` and the type
    `intervention_type`; both spellings are accepted on input.
    """

    id: Optional[str] = None                # None until the API assigns one
    path_id: Optional[str] = None
    title: str = Field(validation_alias=AliasChoices("title", "intervention_name"))
    intervention_type_id: str = Field(
        validation_alias=AliasChoices("intervention_type_id", "intervention_type")
    )
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    duration_hours: Optional[float] = None

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start_date, end=self.end_date)
