# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Registro de actividad con mensajes humanizados.
# Cada operación que modifica el libro deja una entrada aquí.
# ==============================================================================

from typing import Any, Dict, List, Optional

from stock_ledger.models import ImportSummary, MovementType, Product, Transaction
from stock_ledger.repositories.interfaces import IAuditRepository


class AuditService:
    """
    Servicio para registro y consulta de actividad.

    Tipos de evento:
    - STOCK: entradas y salidas
    - DEUDA: cierre de salidas pendientes de documento
    - IMPORTACION: importaciones masivas (completas o parciales)
    - PRODUCTO: altas y ediciones manuales
    - OPCIONES: cambios en el registro de opciones
    - RESPALDO: respaldos guardados en disco
    """

    TYPE_STOCK = 'STOCK'
    TYPE_DEUDA = 'DEUDA'
    TYPE_IMPORTACION = 'IMPORTACION'
    TYPE_PRODUCTO = 'PRODUCTO'
    TYPE_OPCIONES = 'OPCIONES'
    TYPE_RESPALDO = 'RESPALDO'

    def __init__(self, audit_repo: IAuditRepository):
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.audit_repo.log(log_type, user, message, related_id, details)

    def log_movement(self, user: str, transaction: Transaction, new_quantity: float) -> None:
        """
        Registra una entrada o salida de stock.

        Args:
            user: Usuario que registró el movimiento
            transaction: Movimiento creado
            new_quantity: Stock resultante del producto
        """
        if transaction.type == MovementType.INBOUND:
            message = f"Entrada de stock: +{transaction.quantity:g} {transaction.unit}"
        else:
            message = f"Salida de stock: -{transaction.quantity:g} {transaction.unit}"
        message += f" {transaction.product_name} ({transaction.product_nomenclature})"
        if transaction.receiver:
            message += f" - {transaction.receiver}"
        if transaction.is_debt:
            message += " - SIN DOCUMENTO (deuda)"
        message += f" - Nuevo stock: {new_quantity:g} - Por {user}"

        self.log(
            self.TYPE_STOCK,
            user,
            message,
            transaction.product_id,
            {
                'transaction_id': transaction.id,
                'type': transaction.type.value,
                'quantity': transaction.quantity,
                'new_quantity': new_quantity,
                'is_debt': transaction.is_debt,
            }
        )

    def log_debt_resolved(self, user: str, transaction: Transaction) -> None:
        message = (
            f"Deuda cerrada: {transaction.product_name} ({transaction.product_nomenclature}) "
            f"- {transaction.quantity:g} {transaction.unit} - Por {user}"
        )
        self.log(
            self.TYPE_DEUDA,
            user,
            message,
            transaction.id,
            {'resolution_date': transaction.resolution_date, 'has_proof': bool(transaction.resolution_image)}
        )

    def log_import(self, user: str, summary: ImportSummary, candidates: int) -> None:
        """
        Registra el resultado de una importación masiva.

        Args:
            user: Usuario que importó
            summary: Resultado de la importación
            candidates: Candidatos seleccionados
        """
        message = (
            f"Importación de {candidates} candidatos: {summary.inserted} creados, "
            f"{summary.skipped_duplicate} duplicados omitidos"
        )
        if summary.is_partial:
            message += f" - FALLO en el lote {summary.failed_at_chunk}"
        message += f" - Por {user}"
        self.log(self.TYPE_IMPORTACION, user, message, details=summary.to_dict())

    def log_product_created(self, user: str, product: Product) -> None:
        message = f"Producto creado: {product.name} ({product.nomenclature}) por {user}"
        self.log(self.TYPE_PRODUCTO, user, message, product.id, {'name': product.name})

    def log_product_updated(self, user: str, product_id: str, name: str, changes: Dict[str, Any]) -> None:
        message = f"Producto actualizado: {name} por {user}"
        self.log(self.TYPE_PRODUCTO, user, message, product_id, {'changes': changes})

    def log_option_change(self, user: str, kind: str, action: str, details: Dict[str, Any]) -> None:
        """
        Args:
            kind: Categoría de opciones (warehouses, racks, ...)
            action: 'add', 'rename' o 'delete'
        """
        if action == 'rename':
            message = f"Opción renombrada en {kind}: {details.get('old')} → {details.get('new')} por {user}"
        elif action == 'delete':
            message = f"Opción eliminada de {kind}: {details.get('value')} por {user}"
        else:
            message = f"Opción agregada a {kind}: {details.get('value')} por {user}"
        self.log(self.TYPE_OPCIONES, user, message, kind, details)

    def log_backup(self, user: str, result: Dict[str, Any]) -> None:
        message = (
            f"Respaldo guardado: {result['filename']} "
            f"({result['products']} productos, {result['transactions']} movimientos) por {user}"
        )
        self.log(self.TYPE_RESPALDO, user, message, result['filename'], result)

    # =========================================================================
    # CONSULTA DE LOGS
    # =========================================================================

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.audit_repo.get_recent_logs(limit)

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return self.audit_repo.get_logs_by_type(log_type)
