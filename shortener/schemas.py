from pydantic import BaseModel, ConfigDict, HttpUrl
from typing import List, Optional
from datetime import datetime
import uuid

from .validators import Name, Token

class LinkCreate(BaseModel):
    name: Name
    destination: HttpUrl
    token: Optional[Token] = None

class LinkUpdate(BaseModel):
    # Fields left out of the request body keep their stored values
    name: Optional[Name] = None
    destination: Optional[HttpUrl] = None
    token: Optional[Token] = None

class LinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    destination: str
    token: str
    version: int
    created_at: datetime
    updated_at: datetime

class MetadataResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_page: int
    page_size: int
    first_page: int
    last_page: int
    total_records: int

class LinkList(BaseModel):
    links: List[LinkResponse]
    metadata: MetadataResponse

class DailyVisitsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    visits: int

class VisitDataResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_visits: int
    seven_day_visits: int
    visits_per_day: float
    visits: List[DailyVisitsResponse]

class TokenResponse(BaseModel):
    token: str
