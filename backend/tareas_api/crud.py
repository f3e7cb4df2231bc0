"""
SQL for the ``tareas`` table.

Each function takes a live DB-API connection, issues exactly one statement and
ends its transaction. They are blocking and meant to be passed to
ConnectionManager.run(), which rolls back when a statement fails.
Mutations report the affected-row count; callers map 0 to "not found".
"""

from typing import Any

from tareas_api.core.db import cursor_to_dicts, execute
from tareas_api.models import TABLE_NAME, ProductTypeEnum


def list_tareas(conn: Any) -> list[dict[str, Any]]:
    """All tasks, newest first."""
    cur = execute(
        conn,
        f"SELECT id, descripcion, completada, fecha_creacion FROM {TABLE_NAME}"
        " ORDER BY fecha_creacion DESC, id DESC",
    )
    try:
        rows = cursor_to_dicts(cur)
    finally:
        cur.close()
    # End the read transaction.
    conn.commit()
    return rows


def create_tarea(
    conn: Any, descripcion: str, *, product_type: ProductTypeEnum | None = None
) -> int:
    """Insert a task and return its new id."""
    if product_type == ProductTypeEnum.POSTGRES:
        cur = execute(
            conn,
            f"INSERT INTO {TABLE_NAME} (descripcion) VALUES (%s) RETURNING id",
            (descripcion,),
        )
        try:
            new_id = cur.fetchone()[0]
        finally:
            cur.close()
    else:
        cur = execute(
            conn,
            f"INSERT INTO {TABLE_NAME} (descripcion) VALUES (%s)",
            (descripcion,),
        )
        new_id = cur.lastrowid
        cur.close()
    conn.commit()
    return int(new_id)


def update_tarea_completada(conn: Any, tarea_id: int, completada: bool) -> int:
    """Set the completed flag. Returns the affected-row count."""
    cur = execute(
        conn,
        f"UPDATE {TABLE_NAME} SET completada = %s WHERE id = %s",
        (completada, tarea_id),
    )
    affected = cur.rowcount
    cur.close()
    conn.commit()
    return affected


def delete_tarea(conn: Any, tarea_id: int) -> int:
    """Delete a task. Returns the affected-row count."""
    cur = execute(conn, f"DELETE FROM {TABLE_NAME} WHERE id = %s", (tarea_id,))
    affected = cur.rowcount
    cur.close()
    conn.commit()
    return affected
