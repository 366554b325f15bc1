# ==============================================================================
# REPOSITORIO DEL CATÁLOGO
# ==============================================================================
# Productos y movimientos (transacciones) sobre el almacén de documentos.
# Los movimientos son inmutables salvo los campos de deuda.
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional, TypeVar

from stock_ledger.errors import BatchLimitExceededError, ValidationError
from stock_ledger.models import Product, Transaction, utc_now_iso
from stock_ledger.repositories.document_store import DocumentStore, StoreTransaction

T = TypeVar('T')

PRODUCTS = 'products'
TRANSACTIONS = 'transactions'

# Únicos campos de un movimiento que pueden cambiar después de creado
MUTABLE_TRANSACTION_FIELDS = frozenset(['isDebt', 'resolutionImage', 'resolutionDate'])


def _check_transaction_updates(fields: Dict[str, Any]) -> None:
    forbidden = set(fields) - MUTABLE_TRANSACTION_FIELDS
    if forbidden:
        raise ValidationError(
            f"Los movimientos son inmutables; campos no permitidos: {', '.join(sorted(forbidden))}"
        )


class CatalogRepository:
    """
    Repositorio de productos y movimientos.

    Formato de documentos:
        products/<id>:     {"nomenclature": "A1", "name": "...", "quantity": 10, ...}
        transactions/<id>: {"productId": "...", "type": "outbound", "quantity": 4, ...}
    """

    # Máximo de productos por llamada a batch_create_products
    MAX_BATCH_SIZE = 450

    def __init__(self, store: DocumentStore):
        """
        Args:
            store: Almacén de documentos compartido
        """
        self.store = store

    # =========================================================================
    # PRODUCTOS
    # =========================================================================

    def list_products(self) -> List[Product]:
        """
        Lee el catálogo completo (lectura fresca).

        Returns:
            Productos ordenados por última modificación descendente
        """
        products = [Product.from_dict(doc['id'], doc) for doc in self.store.list(PRODUCTS)]
        products.sort(key=lambda p: p.last_updated, reverse=True)
        return products

    def get_product(self, product_id: str) -> Optional[Product]:
        doc = self.store.get(PRODUCTS, product_id)
        if doc is None:
            return None
        return Product.from_dict(product_id, doc)

    def count_products(self) -> int:
        return self.store.count(PRODUCTS)

    def find_products_by(self, field: str, value: Any) -> List[Product]:
        return [Product.from_dict(doc['id'], doc) for doc in self.store.query(PRODUCTS, field, value)]

    def create_product(self, fields: Dict[str, Any]) -> Product:
        """
        Crea un producto.

        Args:
            fields: Documento del producto (sin id)

        Returns:
            Producto creado con su id
        """
        data = dict(fields)
        data['lastUpdated'] = utc_now_iso()
        doc_id = self.store.new_id()
        self.store.put(PRODUCTS, doc_id, data)
        return self.get_product(doc_id)

    def update_product(self, product_id: str, fields: Dict[str, Any]) -> bool:
        """
        Actualiza campos de un producto y refresca lastUpdated.

        Returns:
            True si el producto existía
        """
        data = dict(fields)
        data['lastUpdated'] = utc_now_iso()
        return self.store.update(PRODUCTS, product_id, data)

    def batch_create_products(self, items: List[Dict[str, Any]]) -> List[str]:
        """
        Crea varios productos en una sola escritura atómica.

        Args:
            items: Documentos de productos (máximo MAX_BATCH_SIZE)

        Returns:
            Ids asignados, en el mismo orden

        Raises:
            BatchLimitExceededError: Si se envían más de MAX_BATCH_SIZE productos
        """
        if len(items) > self.MAX_BATCH_SIZE:
            raise BatchLimitExceededError(len(items), self.MAX_BATCH_SIZE)
        batch = self.store.batch()
        now = utc_now_iso()
        ids = []
        for item in items:
            data = dict(item)
            data['lastUpdated'] = now
            ids.append(batch.create(PRODUCTS, data))
        batch.commit()
        return ids

    # =========================================================================
    # MOVIMIENTOS
    # =========================================================================

    def list_transactions(self) -> List[Transaction]:
        """Movimientos ordenados por fecha descendente."""
        txs = [Transaction.from_dict(doc['id'], doc) for doc in self.store.list(TRANSACTIONS)]
        txs.sort(key=lambda t: t.date, reverse=True)
        return txs

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        doc = self.store.get(TRANSACTIONS, transaction_id)
        if doc is None:
            return None
        return Transaction.from_dict(transaction_id, doc)

    def append_transaction(self, fields: Dict[str, Any]) -> str:
        doc_id = self.store.new_id()
        self.store.put(TRANSACTIONS, doc_id, fields)
        return doc_id

    def update_transaction(self, transaction_id: str, fields: Dict[str, Any]) -> bool:
        """
        Actualiza los campos de deuda de un movimiento.

        Raises:
            ValidationError: Si se intenta cambiar un campo inmutable
        """
        _check_transaction_updates(fields)
        return self.store.update(TRANSACTIONS, transaction_id, fields)

    # =========================================================================
    # TRANSACCIONES ATÓMICAS
    # =========================================================================

    def run_in_transaction(self, fn: Callable[['CatalogTransaction'], T]) -> T:
        """
        Ejecuta fn de forma atómica (ver DocumentStore.run_transaction).

        Args:
            fn: Recibe un CatalogTransaction
        """
        return self.store.run_transaction(lambda txn: fn(CatalogTransaction(txn)))


class CatalogTransaction:
    """Vista del catálogo dentro de una transacción optimista."""

    def __init__(self, txn: StoreTransaction):
        self._txn = txn

    def get_product(self, product_id: str) -> Optional[Product]:
        doc = self._txn.get(PRODUCTS, product_id)
        if doc is None:
            return None
        return Product.from_dict(product_id, doc)

    def update_product(self, product_id: str, fields: Dict[str, Any]) -> None:
        data = dict(fields)
        data['lastUpdated'] = utc_now_iso()
        self._txn.update(PRODUCTS, product_id, data)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        doc = self._txn.get(TRANSACTIONS, transaction_id)
        if doc is None:
            return None
        return Transaction.from_dict(transaction_id, doc)

    def append_transaction(self, fields: Dict[str, Any]) -> str:
        return self._txn.create(TRANSACTIONS, fields)

    def update_transaction(self, transaction_id: str, fields: Dict[str, Any]) -> None:
        _check_transaction_updates(fields)
        self._txn.update(TRANSACTIONS, transaction_id, fields)
