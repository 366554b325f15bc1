# ==============================================================================
# ERRORES DEL DOMINIO
# ==============================================================================
# Todas las fallas que los servicios lanzan hacia la capa HTTP.
# Ninguna de ellas deja el almacén modificado parcialmente, excepto la
# importación por lotes (ver ImportSummary.failed_at_chunk).
# ==============================================================================

from typing import Optional


class LedgerError(Exception):
    """Base de todas las excepciones del libro de inventario."""
    pass


class ValidationError(LedgerError):
    """Entrada rechazada antes de cualquier lectura o escritura."""
    pass


class PermissionDeniedError(LedgerError):
    """La sesión actual no tiene permiso para modificar datos."""
    pass


class ProductNotFoundError(LedgerError):
    """El producto solicitado no existe en el catálogo."""

    def __init__(self, product_id: str):
        super().__init__(f"Producto no encontrado: {product_id}")
        self.product_id = product_id


class TransactionNotFoundError(LedgerError):
    """El movimiento solicitado no existe."""

    def __init__(self, transaction_id: str):
        super().__init__(f"Movimiento no encontrado: {transaction_id}")
        self.transaction_id = transaction_id


class InsufficientStockError(LedgerError):
    """
    Salida mayor que el stock actual.

    Attributes:
        available: Cantidad disponible en el momento de la lectura
        requested: Cantidad solicitada
    """

    def __init__(self, product_id: str, available: float, requested: float):
        super().__init__(
            f"Stock insuficiente: disponible {available:g}, solicitado {requested:g}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidStateError(LedgerError):
    """Transición de estado no permitida (p. ej. cerrar una deuda ya cerrada)."""
    pass


class ImportFormatError(LedgerError):
    """La fuente de importación no se puede interpretar."""
    pass


class BatchLimitExceededError(LedgerError):
    """Un lote de escritura supera el máximo de operaciones permitido."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"El lote tiene {size} operaciones (máximo {limit})")
        self.size = size
        self.limit = limit


class StoreConflictError(LedgerError):
    """
    Un documento leído dentro de una transacción cambió antes del commit.
    Uso interno del almacén: provoca el reintento de la transacción.
    """

    def __init__(self, collection: str, doc_id: str, expected: Optional[int], found: Optional[int]):
        super().__init__(
            f"Conflicto en {collection}/{doc_id}: versión esperada {expected}, encontrada {found}"
        )
        self.collection = collection
        self.doc_id = doc_id


class ConcurrentModificationError(LedgerError):
    """Se agotaron los reintentos de una transacción optimista."""

    def __init__(self, attempts: int):
        super().__init__(
            f"No se pudo confirmar la operación tras {attempts} intentos por cambios concurrentes"
        )
        self.attempts = attempts
