"""
Error taxonomy for the tasks API.

Each error carries the HTTP status it maps to; main.py renders them as
``{"error": message}`` (plus ``details`` when present).
"""


class TareasError(Exception):
    """Base class for errors rendered as JSON error responses."""

    status_code: int = 500
    default_message: str = "Error interno del servidor"

    def __init__(self, message: str | None = None, *, details: str | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_content(self) -> dict[str, str]:
        content = {"error": self.message}
        if self.details is not None:
            content["details"] = self.details
        return content


class ValidationError(TareasError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Solicitud inválida"


class NotFoundError(TareasError):
    """Mutation matched zero rows."""

    status_code = 404
    default_message = "Tarea no encontrada"


class ServiceUnavailableError(TareasError):
    """No live database connection."""

    status_code = 503
    default_message = "Servicio no disponible temporalmente (DB)"


class StorageError(TareasError):
    """Driver or query failure."""

    status_code = 500


class QueryTimeoutError(TareasError):
    """A query did not finish within DB_QUERY_TIMEOUT."""

    status_code = 504
    default_message = "Tiempo de espera agotado en la base de datos"


class FatalConnectionError(TareasError):
    """Connection-level failure that forces a reconnect. Not sent to clients."""

    status_code = 503


class ConnectionFailedError(TareasError):
    """Raised by ConnectionManager.connect() once retries are exhausted."""

    status_code = 503
    default_message = "No se pudo conectar a la DB después de máximos reintentos."
