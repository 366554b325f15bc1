# ==============================================================================
# INTERFACES DE REPOSITORIOS Y COLABORADORES
# ==============================================================================
#
# Contratos de los que dependen los servicios. Las implementaciones
# concretas (archivo JSON, hoja de cálculo, OCR) se eligen en
# app_container.py; los servicios no conocen la implementación.
#
# Para los tests basta con un objeto que cumpla el protocolo.
#
# ==============================================================================

from typing import Any, BinaryIO, Callable, Dict, List, Optional, Protocol, TypeVar, runtime_checkable

from stock_ledger.models import OptionKind, Product, ScannedItem, Transaction

T = TypeVar('T')


# ==============================================================================
# ALMACÉN DEL CATÁLOGO
# ==============================================================================

@runtime_checkable
class ICatalogStore(Protocol):
    """
    Productos y movimientos.
    Implementación: CatalogRepository.
    """

    def list_products(self) -> List[Product]:
        """Lectura fresca del catálogo completo."""
        ...

    def get_product(self, product_id: str) -> Optional[Product]:
        ...

    def create_product(self, fields: Dict[str, Any]) -> Product:
        ...

    def update_product(self, product_id: str, fields: Dict[str, Any]) -> bool:
        ...

    def batch_create_products(self, items: List[Dict[str, Any]]) -> List[str]:
        """Creación atómica de hasta 450 productos."""
        ...

    def list_transactions(self) -> List[Transaction]:
        ...

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        ...

    def append_transaction(self, fields: Dict[str, Any]) -> str:
        ...

    def update_transaction(self, transaction_id: str, fields: Dict[str, Any]) -> bool:
        """Solo campos de deuda."""
        ...

    def run_in_transaction(self, fn: Callable[[Any], T]) -> T:
        """Ejecuta fn de forma atómica con reintento optimista."""
        ...


# ==============================================================================
# REGISTRO DE OPCIONES
# ==============================================================================

@runtime_checkable
class IOptionRegistry(Protocol):
    """
    Listas de valores sugeridos.
    Implementación: OptionsRepository.
    """

    def get_options(self, kind: OptionKind) -> List[str]:
        ...

    def add_option_if_absent(self, kind: OptionKind, value: str) -> List[str]:
        ...

    def rename_option(self, kind: OptionKind, old_value: str, new_value: str) -> List[str]:
        ...

    def delete_option(self, kind: OptionKind, value: str) -> List[str]:
        ...


# ==============================================================================
# AUDITORÍA
# ==============================================================================

@runtime_checkable
class IAuditRepository(Protocol):
    """Implementación: AuditRepository."""

    def entries(self) -> List[Dict[str, Any]]:
        ...

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        ...

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        ...

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        ...


# ==============================================================================
# COLABORADORES DE IMPORTACIÓN
# ==============================================================================

@runtime_checkable
class IRecognitionService(Protocol):
    """
    Reconocimiento de imágenes (OCR). No hay implementación incluida;
    se inyecta en AppContainer si está disponible.
    """

    def scan(self, image: bytes) -> List[ScannedItem]:
        ...


@runtime_checkable
class ITabularParser(Protocol):
    """Implementación: SpreadsheetParser."""

    def parse(self, stream: BinaryIO) -> List[ScannedItem]:
        ...
