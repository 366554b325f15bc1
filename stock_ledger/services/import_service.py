# ==============================================================================
# SERVICIO DE IMPORTACIÓN (CONCILIACIÓN MASIVA)
# ==============================================================================
# Convierte candidatos (OCR / hoja de cálculo) en productos nuevos:
#
#   1. Lectura fresca del catálogo → conjuntos normalizados de códigos y nombres
#   2. Se omite todo candidato cuyo código O nombre ya exista (nunca se fusiona)
#   3. Los restantes se completan con los valores del formulario
#   4. Las categorías/unidades/almacenes nuevos se agregan al registro de
#      opciones en paralelo
#   5. Se confirman en lotes de hasta chunk_size, uno tras otro. Si un lote
#      falla se detiene; los lotes anteriores quedan confirmados.
# ==============================================================================

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Set, Tuple

from stock_ledger.errors import LedgerError, ValidationError
from stock_ledger.models import (
    DEFAULT_CATEGORY,
    ImportContext,
    ImportSummary,
    OptionKind,
    Product,
    ScannedItem,
    SessionContext,
    Unit,
    normalize_key,
    parse_quantity,
)
from stock_ledger.performance_logger import log_error, profile_function
from stock_ledger.repositories.document_store import DocumentStore
from stock_ledger.repositories.interfaces import ICatalogStore, IOptionRegistry
from stock_ledger.services.audit_service import AuditService

# Campo del candidato → categoría del registro de opciones
PROVISIONED_FIELDS = (
    ('category', OptionKind.CATEGORIES),
    ('unit', OptionKind.UNITS),
    ('warehouse', OptionKind.WAREHOUSES),
)


def build_duplicate_index(products: Iterable[Product]) -> Tuple[Set[str], Set[str]]:
    """
    Returns:
        (códigos normalizados, nombres normalizados) del catálogo.
        Las claves vacías no se incluyen.
    """
    nomenclatures = set()
    names = set()
    for product in products:
        nomenclature = normalize_key(product.nomenclature)
        name = normalize_key(product.name)
        if nomenclature:
            nomenclatures.add(nomenclature)
        if name:
            names.add(name)
    return nomenclatures, names


def is_duplicate(item: ScannedItem, nomenclatures: Set[str], names: Set[str]) -> bool:
    """Duplicado si el código O el nombre ya existen en el catálogo."""
    nomenclature = normalize_key(item.nomenclature)
    name = normalize_key(item.name)
    return bool(nomenclature and nomenclature in nomenclatures) or bool(name and name in names)


def build_product_fields(item: ScannedItem, context: ImportContext) -> Dict[str, Any]:
    """Documento de producto a partir de un candidato y los valores del formulario."""
    return {
        'nomenclature': item.nomenclature.strip(),
        'name': item.name.strip(),
        'category': item.category.strip() or context.category or DEFAULT_CATEGORY,
        'quantity': item.quantity,
        'unit': item.unit.strip() or Unit.PCS.value,
        'warehouse': item.warehouse.strip() or context.warehouse,
        'rack': context.rack,
        'minQuantity': context.min_quantity,
        'isLowStockTracked': False,
        'dateAdded': context.date_added,
        'images': [],
    }


class ImportService:
    """
    Importador de candidatos.

    Un mismo lote de candidatos puede traer duplicados entre sí; solo se
    compara contra el catálogo existente (el agrupador de duplicados se
    muestra en la pantalla de revisión para que el usuario los resuelva).
    """

    DEFAULT_CHUNK_SIZE = 450
    MAX_WORKERS = 4

    def __init__(
        self,
        catalog: ICatalogStore,
        options: IOptionRegistry,
        audit_service: AuditService = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        """
        Args:
            catalog: Almacén de productos
            options: Registro de opciones
            audit_service: Servicio de auditoría (opcional)
            chunk_size: Productos por lote (máximo DocumentStore.MAX_BATCH_OPERATIONS)
        """
        if not 1 <= chunk_size <= DocumentStore.MAX_BATCH_OPERATIONS:
            raise ValueError(
                f"chunk_size debe estar entre 1 y {DocumentStore.MAX_BATCH_OPERATIONS}, recibido {chunk_size}"
            )
        self.catalog = catalog
        self.options = options
        self.audit_service = audit_service
        self.chunk_size = chunk_size

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    @staticmethod
    def select_for_commit(items: List[ScannedItem]) -> List[ScannedItem]:
        """
        Filtra los candidatos marcados en la pantalla de revisión.

        Raises:
            ValidationError: Si no hay ninguno seleccionado
        """
        selected = [item for item in items if item.selected]
        if not selected:
            raise ValidationError("No hay productos seleccionados para importar")
        return selected

    @staticmethod
    def _validate(candidates: List[ScannedItem]) -> None:
        if not candidates:
            raise ValidationError("La lista de candidatos está vacía")
        for position, item in enumerate(candidates, start=1):
            if not item.name.strip() and not item.nomenclature.strip():
                raise ValidationError(f"El candidato {position} no tiene nombre ni código")
            parse_quantity(item.quantity, f"quantity (candidato {position})")

    # =========================================================================
    # IMPORTACIÓN
    # =========================================================================

    def _provision_options(self, queued: List[Dict[str, Any]]) -> None:
        """
        Agrega al registro los valores de categoría, unidad y almacén que aún
        no existen. Las altas se ejecutan en paralelo.
        """
        pending = []
        for field_name, kind in PROVISIONED_FIELDS:
            known = {normalize_key(v) for v in self.options.get_options(kind)}
            for value in dict.fromkeys(doc[field_name] for doc in queued if doc[field_name]):
                key = normalize_key(value)
                if key not in known:
                    known.add(key)
                    pending.append((kind, value))

        if not pending:
            return

        with ThreadPoolExecutor(max_workers=min(self.MAX_WORKERS, len(pending))) as executor:
            futures = [executor.submit(self.options.add_option_if_absent, kind, value) for kind, value in pending]
            for future in futures:
                future.result()

    @profile_function(name="Importar productos")
    def run_import(
        self,
        session: SessionContext,
        candidates: List[ScannedItem],
        context: ImportContext
    ) -> ImportSummary:
        """
        Importa candidatos como productos nuevos.

        Args:
            session: Usuario que importa
            candidates: Candidatos ya seleccionados
            context: Valores por defecto del formulario

        Returns:
            ImportSummary (con failed_at_chunk si un lote falló)

        Raises:
            PermissionDeniedError: Si la sesión es de solo lectura
            ValidationError: Lista vacía o candidato inválido (antes de leer nada)
        """
        session.ensure_can_edit()
        self._validate(candidates)

        nomenclatures, names = build_duplicate_index(self.catalog.list_products())

        summary = ImportSummary()
        queued = []
        for item in candidates:
            if is_duplicate(item, nomenclatures, names):
                summary.skipped_duplicate += 1
            else:
                queued.append(build_product_fields(item, context))

        if queued:
            self._provision_options(queued)

        for chunk_number, start in enumerate(range(0, len(queued), self.chunk_size), start=1):
            chunk = queued[start:start + self.chunk_size]
            try:
                self.catalog.batch_create_products(chunk)
            except (LedgerError, OSError) as e:
                summary.failed_at_chunk = chunk_number
                summary.error = str(e)
                log_error("Importar productos", e, session.username, {
                    'lote': chunk_number,
                    'insertados': summary.inserted,
                    'pendientes': len(queued) - start,
                })
                break
            summary.inserted += len(chunk)

        if self.audit_service:
            self.audit_service.log_import(session.username, summary, len(candidates))

        return summary
