"""
Task endpoints: list, create, update completed flag, delete.

Every endpoint depends on a live connection (503 otherwise) and issues one
query through the connection manager. "Not found" comes from the affected-row
count, never from a read before the write.
"""

import logging
from functools import partial
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Body
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import SQLModel

from tareas_api import crud
from tareas_api.api.deps import ConnectedManagerDep
from tareas_api.core.exceptions import NotFoundError, ValidationError
from tareas_api.schemas import (
    Message,
    TareaCreate,
    TareaCreated,
    TareaPublic,
    TareaUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tareas", tags=["tareas"])

M = TypeVar("M", bound=SQLModel)

MSG_DESCRIPCION_REQUIRED = "La descripción es requerida"
MSG_COMPLETADA_NOT_BOOL = 'El estado "completada" debe ser un booleano'
MSG_INVALID_ID = "ID de tarea inválido o faltante"
MSG_NOT_FOUND = "Tarea no encontrada"
MSG_UPDATED = "Tarea actualizada correctamente"
MSG_DELETED = "Tarea eliminada correctamente"


def parse_tarea_id(raw: str) -> int:
    """Path id must be a plain decimal integer, optionally negative."""
    digits = raw[1:] if raw.startswith("-") else raw
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValidationError(MSG_INVALID_ID)
    return int(raw)


def _parse_body(model: type[M], payload: Any, message: str) -> M:
    if not isinstance(payload, dict):
        raise ValidationError(message)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(message) from e


@router.get("", response_model=list[TareaPublic])
async def list_tareas(manager: ConnectedManagerDep) -> Any:
    """List all tasks, newest first."""
    logger.info("GET /tareas")
    return await manager.run(
        crud.list_tareas,
        error_message="Error interno del servidor al obtener tareas",
    )


@router.post("", response_model=TareaCreated, status_code=201)
async def create_tarea(
    manager: ConnectedManagerDep,
    payload: Annotated[Any, Body()] = None,
) -> Any:
    """Create a task. Only ``descripcion`` is accepted; it must be a non-empty string."""
    logger.info("POST /tareas body=%s", payload)
    body = _parse_body(TareaCreate, payload, MSG_DESCRIPCION_REQUIRED)
    new_id = await manager.run(
        partial(
            crud.create_tarea,
            descripcion=body.descripcion,
            product_type=manager.product_type,
        ),
        error_message="Error interno del servidor al agregar tarea",
    )
    logger.info("Created tarea id=%s", new_id)
    return TareaCreated(id=new_id, descripcion=body.descripcion, completada=False)


@router.put("/{id}", response_model=Message)
async def update_tarea(
    manager: ConnectedManagerDep,
    id: str,
    payload: Annotated[Any, Body()] = None,
) -> Any:
    """Set ``completada`` (strict boolean) on a task."""
    logger.info("PUT /tareas/%s body=%s", id, payload)
    tarea_id = parse_tarea_id(id)
    body = _parse_body(TareaUpdate, payload, MSG_COMPLETADA_NOT_BOOL)
    affected = await manager.run(
        partial(
            crud.update_tarea_completada,
            tarea_id=tarea_id,
            completada=body.completada,
        ),
        error_message="Error al actualizar tarea",
    )
    if affected == 0:
        raise NotFoundError(MSG_NOT_FOUND)
    return Message(message=MSG_UPDATED)


@router.delete("/{id}", response_model=Message)
async def delete_tarea(manager: ConnectedManagerDep, id: str) -> Any:
    """Delete a task."""
    logger.info("DELETE /tareas/%s", id)
    tarea_id = parse_tarea_id(id)
    affected = await manager.run(
        partial(crud.delete_tarea, tarea_id=tarea_id),
        error_message="Error al eliminar tarea",
    )
    if affected == 0:
        logger.info("Tarea %s not found for delete", tarea_id)
        raise NotFoundError(MSG_NOT_FOUND)
    logger.info("Deleted tarea id=%s", tarea_id)
    return Message(message=MSG_DELETED)
