"""
Storage model for tasks.

One table, ``tareas``, created on first connection when DB_CREATE_TABLE is on.
The DDL differs per product type only in how the key and boolean are declared.
"""

from enum import Enum

TABLE_NAME = "tareas"


class ProductTypeEnum(str, Enum):
    """Supported database product types."""

    MYSQL = "mysql"
    POSTGRES = "postgres"


CREATE_TABLE_SQL: dict[ProductTypeEnum, str] = {
    ProductTypeEnum.MYSQL: (
        f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
        " id INT AUTO_INCREMENT PRIMARY KEY,"
        " descripcion TEXT NOT NULL,"
        " completada BOOLEAN NOT NULL DEFAULT FALSE,"
        " fecha_creacion TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP"
        ")"
    ),
    ProductTypeEnum.POSTGRES: (
        f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
        " id SERIAL PRIMARY KEY,"
        " descripcion TEXT NOT NULL,"
        " completada BOOLEAN NOT NULL DEFAULT FALSE,"
        " fecha_creacion TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP"
        ")"
    ),
}
