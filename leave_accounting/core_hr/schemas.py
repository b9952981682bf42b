"""Core HR Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Request → request bodies (write)
  - *Out               → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class EmployeeOut(BaseModel):
    """Employee as seen by leave accounting."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    department: Optional[str] = None
    designation: Optional[str] = None
    date_of_joining: date
    manager_id: Optional[uuid.UUID] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class EmployeeCreate(BaseModel):
    """Payload for provisioning a new employee."""

    employee_code: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    department: Optional[str] = Field(None, max_length=150)
    designation: Optional[str] = Field(None, max_length=150)
    date_of_joining: date
    manager_id: Optional[uuid.UUID] = None


class ManagerAssignRequest(BaseModel):
    """Payload for (re)assigning or clearing an employee's manager."""

    manager_id: Optional[uuid.UUID] = None
