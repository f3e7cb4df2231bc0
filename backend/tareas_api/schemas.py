"""
Pydantic schemas for the tasks API.
"""

from datetime import datetime

from pydantic import StrictBool, StrictStr
from sqlmodel import Field, SQLModel


class TareaCreate(SQLModel):
    """Body for POST /tareas."""

    descripcion: StrictStr = Field(..., min_length=1)


class TareaUpdate(SQLModel):
    """Body for PUT /tareas/{id}. Only the completed flag can change."""

    completada: StrictBool


class TareaPublic(SQLModel):
    id: int
    descripcion: str
    completada: bool
    fecha_creacion: datetime | None = None


class TareaCreated(SQLModel):
    """Response for POST /tareas; fecha_creacion is assigned by the database."""

    id: int
    descripcion: str
    completada: bool = False


class Message(SQLModel):
    message: str


class ErrorResponse(SQLModel):
    error: str
    details: str | None = None
