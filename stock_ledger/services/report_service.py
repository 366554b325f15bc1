# ==============================================================================
# SERVICIO DE REPORTES
# ==============================================================================
# Panel principal, stock bajo, deudas y el reporte personalizado con
# filtros cruzados entre productos y movimientos.
# ==============================================================================

import csv
import io
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from stock_ledger.errors import ValidationError
from stock_ledger.models import (
    CategoryFilter,
    DebtOnlyFilter,
    DebtState,
    InboundDateFilter,
    MovementType,
    OutboundDateFilter,
    Product,
    QuantityRangeFilter,
    RackFilter,
    ReceiverFilter,
    ReportFilter,
    SupplierFilter,
    Transaction,
    UnitFilter,
    WarehouseFilter,
)
from stock_ledger.performance_logger import profile_function
from stock_ledger.repositories.interfaces import ICatalogStore

REPORT_INVENTORY = 'inventory'
REPORT_HISTORY = 'history'
REPORTS = (REPORT_INVENTORY, REPORT_HISTORY)

INVENTORY_CSV_HEADERS = ['Código', 'Nombre', 'Categoría', 'Almacén', 'Estante', 'Cantidad', 'Unidad', 'Fecha de alta']
HISTORY_CSV_HEADERS = [
    'Fecha', 'Tipo', 'Código', 'Producto', 'Cantidad', 'Unidad',
    'Proveedor/Receptor', 'Estado', 'Fecha de cierre', 'Notas',
]

DEBT_STATE_LABELS = {
    DebtState.STANDARD: 'Estándar',
    DebtState.PENDING: 'Deuda pendiente',
    DebtState.RESOLVED: 'Deuda cerrada',
}


def _contains_text(value: str, text: str) -> bool:
    return text.lower() in (value or '').lower()


def _tx_matches(tx: Transaction, movement_type: MovementType, date_filter) -> bool:
    return tx.type == movement_type and date_filter.range.contains(tx.date)


class ReportService:
    """Consultas de solo lectura sobre el catálogo y el historial."""

    def __init__(self, catalog: ICatalogStore):
        self.catalog = catalog

    # =========================================================================
    # PANEL PRINCIPAL
    # =========================================================================

    def low_stock_products(self) -> List[Product]:
        return [p for p in self.catalog.list_products() if p.is_low_stock]

    def pending_debts(self) -> List[Transaction]:
        return [t for t in self.catalog.list_transactions() if t.debt_state == DebtState.PENDING]

    @profile_function(name="Resumen del panel")
    def dashboard_summary(self) -> Dict[str, Any]:
        """
        Returns:
            {products, lowStock, pendingDebts, transactions, recentTransactions}
        """
        products = self.catalog.list_products()
        transactions = self.catalog.list_transactions()
        return {
            'products': len(products),
            'lowStock': sum(1 for p in products if p.is_low_stock),
            'pendingDebts': sum(1 for t in transactions if t.debt_state == DebtState.PENDING),
            'transactions': len(transactions),
            'recentTransactions': [t.to_api_dict() for t in transactions[:5]],
        }

    # =========================================================================
    # REPORTE PERSONALIZADO
    # =========================================================================

    def filter_inventory(self, filters: Sequence[ReportFilter]) -> List[Product]:
        """
        Filtra productos. Los filtros de proveedor, receptor, deuda y fechas
        se evalúan sobre los movimientos del producto.

        Una fecha de entrada coincide con la fecha de alta del producto O con
        la fecha de alguna de sus entradas.
        """
        products = self.catalog.list_products()
        by_product: Dict[str, List[Transaction]] = defaultdict(list)
        for tx in self.catalog.list_transactions():
            by_product[tx.product_id].append(tx)

        return [p for p in products if all(self._product_matches(p, by_product[p.id], f) for f in filters)]

    @staticmethod
    def _product_matches(product: Product, txs: List[Transaction], f: ReportFilter) -> bool:
        if isinstance(f, CategoryFilter):
            return product.category == f.category
        if isinstance(f, WarehouseFilter):
            return product.warehouse == f.warehouse
        if isinstance(f, RackFilter):
            return product.rack == f.rack
        if isinstance(f, UnitFilter):
            return product.unit == f.unit
        if isinstance(f, QuantityRangeFilter):
            return f.matches(product.quantity)
        if isinstance(f, SupplierFilter):
            return any(t.type == MovementType.INBOUND and _contains_text(t.receiver, f.text) for t in txs)
        if isinstance(f, ReceiverFilter):
            return any(t.type == MovementType.OUTBOUND and _contains_text(t.receiver, f.text) for t in txs)
        if isinstance(f, DebtOnlyFilter):
            return any(t.is_debt for t in txs)
        if isinstance(f, InboundDateFilter):
            return f.range.contains(product.date_added) or any(
                _tx_matches(t, MovementType.INBOUND, f) for t in txs
            )
        if isinstance(f, OutboundDateFilter):
            return any(_tx_matches(t, MovementType.OUTBOUND, f) for t in txs)
        raise ValidationError(f"Filtro no soportado: {f!r}")

    def filter_history(self, filters: Sequence[ReportFilter]) -> List[Transaction]:
        """
        Filtra movimientos. Categoría, almacén y estante se toman del producto
        actual; si el producto ya no existe esos filtros no descartan.
        """
        products = {p.id: p for p in self.catalog.list_products()}
        return [
            tx for tx in self.catalog.list_transactions()
            if all(self._transaction_matches(tx, products.get(tx.product_id), f) for f in filters)
        ]

    @staticmethod
    def _transaction_matches(tx: Transaction, product: Optional[Product], f: ReportFilter) -> bool:
        if isinstance(f, UnitFilter):
            return tx.unit == f.unit
        if isinstance(f, QuantityRangeFilter):
            return f.matches(tx.quantity)
        if isinstance(f, DebtOnlyFilter):
            return tx.is_debt
        if isinstance(f, CategoryFilter):
            return product is None or product.category == f.category
        if isinstance(f, WarehouseFilter):
            return product is None or product.warehouse == f.warehouse
        if isinstance(f, RackFilter):
            return product is None or product.rack == f.rack
        if isinstance(f, SupplierFilter):
            return tx.type == MovementType.INBOUND and _contains_text(tx.receiver, f.text)
        if isinstance(f, ReceiverFilter):
            return tx.type == MovementType.OUTBOUND and _contains_text(tx.receiver, f.text)
        if isinstance(f, InboundDateFilter):
            return _tx_matches(tx, MovementType.INBOUND, f)
        if isinstance(f, OutboundDateFilter):
            return _tx_matches(tx, MovementType.OUTBOUND, f)
        raise ValidationError(f"Filtro no soportado: {f!r}")

    def run_report(self, report: str, filters: Sequence[ReportFilter]) -> List[Any]:
        """
        Raises:
            ValidationError: Si el reporte no es 'inventory' ni 'history'
        """
        if report == REPORT_INVENTORY:
            return self.filter_inventory(filters)
        if report == REPORT_HISTORY:
            return self.filter_history(filters)
        raise ValidationError(f"Reporte desconocido: {report!r}")

    # =========================================================================
    # EXPORTACIÓN
    # =========================================================================

    @staticmethod
    def to_csv(report: str, rows: List[Any]) -> str:
        """
        Convierte el resultado de un reporte en CSV con encabezados legibles.

        Args:
            report: 'inventory' o 'history'
            rows: Productos o movimientos devueltos por run_report
        """
        si = io.StringIO()
        writer = csv.writer(si)
        if report == REPORT_INVENTORY:
            writer.writerow(INVENTORY_CSV_HEADERS)
            for p in rows:
                writer.writerow([
                    p.nomenclature, p.name, p.category, p.warehouse, p.rack,
                    f"{p.quantity:g}", p.unit, p.date_added,
                ])
        else:
            writer.writerow(HISTORY_CSV_HEADERS)
            for tx in rows:
                writer.writerow([
                    tx.date,
                    'Entrada' if tx.type == MovementType.INBOUND else 'Salida',
                    tx.product_nomenclature,
                    tx.product_name,
                    f"{tx.quantity:g}",
                    tx.unit,
                    tx.receiver,
                    DEBT_STATE_LABELS[tx.debt_state],
                    tx.resolution_date or '-',
                    tx.notes,
                ])
        return si.getvalue()
