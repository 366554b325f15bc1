# ==============================================================================
# SERVICIO DE DEUDAS
# ==============================================================================
# Salidas registradas sin documento (isDebt=True) quedan pendientes hasta
# que alguien entrega el comprobante.
#
#   STANDARD ──(terminal)
#   PENDING ──resolve_debt──▶ RESOLVED ──(terminal)
# ==============================================================================

from typing import List, Optional

from stock_ledger.errors import InvalidStateError, TransactionNotFoundError
from stock_ledger.models import DebtState, SessionContext, Transaction, today_iso
from stock_ledger.performance_logger import profile_function
from stock_ledger.repositories.catalog_repository import CatalogTransaction
from stock_ledger.repositories.interfaces import ICatalogStore
from stock_ledger.services.audit_service import AuditService


class DebtService:
    """Cierre y consulta de deudas de documentación."""

    def __init__(self, catalog: ICatalogStore, audit_service: AuditService = None):
        self.catalog = catalog
        self.audit_service = audit_service

    @profile_function(name="Cerrar deuda")
    def resolve_debt(
        self,
        session: SessionContext,
        transaction_id: str,
        proof_image: Optional[str] = None
    ) -> Transaction:
        """
        Cierra una deuda pendiente.

        Args:
            session: Usuario que cierra la deuda
            transaction_id: Movimiento en estado PENDING
            proof_image: Referencia a la imagen del comprobante (opcional)

        Returns:
            Movimiento actualizado

        Raises:
            TransactionNotFoundError: Si el movimiento no existe
            InvalidStateError: Si el movimiento no está pendiente
        """
        session.ensure_can_edit()

        def resolve(txn: CatalogTransaction) -> Transaction:
            transaction = txn.get_transaction(transaction_id)
            if transaction is None:
                raise TransactionNotFoundError(transaction_id)
            if transaction.debt_state != DebtState.PENDING:
                raise InvalidStateError(
                    f"El movimiento {transaction_id} no tiene una deuda pendiente "
                    f"(estado: {transaction.debt_state.value})"
                )
            resolution_date = today_iso()
            txn.update_transaction(transaction_id, {
                'isDebt': False,
                'resolutionImage': proof_image,
                'resolutionDate': resolution_date,
            })
            transaction.is_debt = False
            transaction.resolution_image = proof_image
            transaction.resolution_date = resolution_date
            return transaction

        transaction = self.catalog.run_in_transaction(resolve)

        if self.audit_service:
            self.audit_service.log_debt_resolved(session.username, transaction)

        return transaction

    def pending_debts(self) -> List[Transaction]:
        """Movimientos en estado PENDING, más recientes primero."""
        return [t for t in self.catalog.list_transactions() if t.debt_state == DebtState.PENDING]
