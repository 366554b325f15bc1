# ==============================================================================
# SERVICIO DE MOVIMIENTOS
# ==============================================================================
# Entradas y salidas de stock. Cada movimiento actualiza la cantidad del
# producto y agrega un registro inmutable al historial en un solo commit.
# ==============================================================================

from typing import Optional, Tuple, Union

from stock_ledger.errors import (
    ConcurrentModificationError,
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)
from stock_ledger.models import (
    MovementMetadata,
    MovementType,
    SessionContext,
    Transaction,
    parse_quantity,
    round_quantity,
    today_iso,
)
from stock_ledger.performance_logger import log_error, profile_function
from stock_ledger.repositories.catalog_repository import CatalogTransaction
from stock_ledger.repositories.interfaces import ICatalogStore
from stock_ledger.services.audit_service import AuditService


def to_movement_type(value: Union[str, MovementType]) -> MovementType:
    try:
        return MovementType(value)
    except ValueError:
        raise ValidationError(f"Tipo de movimiento inválido: {value!r} (use 'inbound' u 'outbound')")


class MovementService:
    """
    Servicio del libro de movimientos.

    Responsabilidades:
    - Validar cantidad, tipo y bandera de deuda antes de tocar el almacén
    - Leer el stock actual dentro de la transacción (nunca un valor cacheado)
    - Rechazar salidas mayores que el stock
    - Confirmar actualización del producto + registro del movimiento juntos
    """

    def __init__(self, catalog: ICatalogStore, audit_service: AuditService = None):
        """
        Args:
            catalog: Almacén de productos y movimientos
            audit_service: Servicio de auditoría (opcional)
        """
        self.catalog = catalog
        self.audit_service = audit_service

    @profile_function(name="Registrar movimiento")
    def apply_movement(
        self,
        session: SessionContext,
        product_id: str,
        movement_type: Union[str, MovementType],
        quantity: float,
        metadata: Optional[MovementMetadata] = None
    ) -> Transaction:
        """
        Registra una entrada o salida de stock.

        Args:
            session: Usuario que registra el movimiento
            product_id: Producto afectado
            movement_type: 'inbound' o 'outbound'
            quantity: Cantidad (> 0)
            metadata: Fecha, proveedor/receptor, notas, imágenes y deuda

        Returns:
            Movimiento creado (con id)

        Raises:
            PermissionDeniedError: Si la sesión es de solo lectura
            ValidationError: Cantidad no positiva, tipo inválido o deuda en una entrada
            ProductNotFoundError: Si el producto no existe
            InsufficientStockError: Si la salida supera el stock actual
            ConcurrentModificationError: Si se agotaron los reintentos
        """
        session.ensure_can_edit()
        movement_type = to_movement_type(movement_type)
        amount = parse_quantity(quantity, 'quantity', allow_zero=False)
        if not product_id:
            raise ValidationError("productId es obligatorio")
        metadata = metadata or MovementMetadata()
        if metadata.is_debt and movement_type != MovementType.OUTBOUND:
            raise ValidationError("Solo una salida puede registrarse como deuda")

        def move(txn: CatalogTransaction) -> Tuple[Transaction, float]:
            product = txn.get_product(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)

            if movement_type == MovementType.OUTBOUND:
                if amount > product.quantity:
                    raise InsufficientStockError(product_id, product.quantity, amount)
                new_quantity = round_quantity(product.quantity - amount)
            else:
                new_quantity = round_quantity(product.quantity + amount)

            txn.update_product(product_id, {'quantity': new_quantity})

            # Nombre y código se copian tal como están ahora
            transaction = Transaction(
                id='',
                product_id=product_id,
                product_name=product.name,
                product_nomenclature=product.nomenclature,
                type=movement_type,
                quantity=amount,
                unit=product.unit,
                date=metadata.date or today_iso(),
                receiver=metadata.receiver,
                notes=metadata.notes,
                images=list(metadata.images),
                is_debt=metadata.is_debt,
                created_by=session.username,
            )
            transaction.id = txn.append_transaction(transaction.to_dict())
            return transaction, new_quantity

        try:
            transaction, new_quantity = self.catalog.run_in_transaction(move)
        except ConcurrentModificationError as e:
            log_error("Registrar movimiento", e, session.username, {
                'product_id': product_id,
                'type': movement_type.value,
                'quantity': amount,
            })
            raise

        if self.audit_service:
            self.audit_service.log_movement(session.username, transaction, new_quantity)

        return transaction
