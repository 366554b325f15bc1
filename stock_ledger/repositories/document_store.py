# ==============================================================================
# ALMACÉN DE DOCUMENTOS
# ==============================================================================
# Un único archivo JSON con un mapa por colección:
#
#   {
#     "products":     {"<id>": {...documento..., "version": 3}},
#     "transactions": {"<id>": {...}},
#     "settings":     {"global": {...}}
#   }
#
# Primitivas:
#   - get / list / query / put / update / delete por id
#   - batch(): escritura atómica de hasta MAX_BATCH_OPERATIONS operaciones
#   - run_transaction(fn): transacción optimista. Las lecturas registran la
#     versión de cada documento; el commit verifica, bajo el lock, que
#     ninguna versión cambió y escribe todo en un solo reemplazo de archivo.
#     Si hubo un cambio concurrente, se vuelve a ejecutar fn completo.
# ==============================================================================

import copy
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from stock_ledger.errors import (
    BatchLimitExceededError,
    ConcurrentModificationError,
    StoreConflictError,
)
from stock_ledger.repositories.base import JsonFileRepository

T = TypeVar('T')

# (operación, colección, id, datos)
WriteOp = Tuple[str, str, str, Optional[Dict[str, Any]]]


class DocumentStore(JsonFileRepository):
    """
    Almacén de documentos sobre un archivo JSON.

    Cada documento lleva un campo 'version' que el almacén incrementa en
    cada escritura. Los documentos devueltos son copias e incluyen 'id'.
    """

    COLLECTIONS = ('products', 'transactions', 'settings')

    # Techo de operaciones por lote atómico
    MAX_BATCH_OPERATIONS = 500

    # Reintentos por defecto de una transacción optimista
    DEFAULT_MAX_ATTEMPTS = 5

    def __init__(self, file_path: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        """
        Args:
            file_path: Ruta del archivo de datos
            max_attempts: Ejecuciones máximas de una transacción con conflictos
        """
        super().__init__(file_path)
        self.max_attempts = max_attempts

    def _empty_data(self) -> Dict[str, Dict[str, Any]]:
        return {name: {} for name in self.COLLECTIONS}

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex[:20]

    @staticmethod
    def _as_document(doc_id: str, raw: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(raw)
        doc['id'] = doc_id
        doc.setdefault('version', 0)
        return doc

    def _collection(self, data: Dict[str, Any], collection: str) -> Dict[str, Any]:
        return data.setdefault(collection, {})

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene un documento por id.

        Returns:
            Copia del documento (con 'id' y 'version') o None
        """
        raw = self._collection(self._read_raw(), collection).get(doc_id)
        if raw is None:
            return None
        return self._as_document(doc_id, raw)

    def list(self, collection: str) -> List[Dict[str, Any]]:
        """Lectura completa de una colección (siempre fresca, sin caché)."""
        docs = self._collection(self._read_raw(), collection)
        return [self._as_document(doc_id, raw) for doc_id, raw in docs.items()]

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Documentos cuyo campo es exactamente igual a value."""
        return [doc for doc in self.list(collection) if doc.get(field) == value]

    def count(self, collection: str) -> int:
        return len(self._collection(self._read_raw(), collection))

    # =========================================================================
    # ESCRITURAS DIRECTAS
    # =========================================================================

    def put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Crea o reemplaza un documento."""
        self._commit({}, [('set', collection, doc_id, data)])

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """
        Actualiza campos de un documento existente.

        Returns:
            True si el documento existía
        """
        with self._file_lock:
            if self.get(collection, doc_id) is None:
                return False
            self._commit({}, [('update', collection, doc_id, fields)])
            return True

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._file_lock:
            if self.get(collection, doc_id) is None:
                return False
            self._commit({}, [('delete', collection, doc_id, None)])
            return True

    def batch(self) -> 'WriteBatch':
        """Crea un lote de escritura atómico."""
        return WriteBatch(self)

    # =========================================================================
    # TRANSACCIONES
    # =========================================================================

    def run_transaction(
        self,
        fn: Callable[['StoreTransaction'], T],
        max_attempts: Optional[int] = None
    ) -> T:
        """
        Ejecuta fn dentro de una transacción optimista.

        fn recibe un StoreTransaction, lee con txn.get/txn.query y acumula
        escrituras con txn.set/txn.create/txn.update. Si fn lanza una
        excepción no se escribe nada. Si el commit detecta que un documento
        leído cambió, fn se ejecuta de nuevo con datos frescos.

        Args:
            fn: Función de la transacción
            max_attempts: Ejecuciones máximas (por defecto self.max_attempts)

        Returns:
            El valor retornado por fn en el intento confirmado

        Raises:
            ConcurrentModificationError: Si todos los intentos tuvieron conflicto
        """
        attempts = max_attempts or self.max_attempts
        for _ in range(attempts):
            txn = StoreTransaction(self)
            result = fn(txn)
            try:
                self._commit(txn.read_versions, txn.writes)
            except StoreConflictError:
                continue
            return result
        raise ConcurrentModificationError(attempts)

    def _commit(self, read_versions: Dict[Tuple[str, str], Optional[int]], writes: List[WriteOp]) -> None:
        """
        Verifica versiones leídas y aplica todas las escrituras en un solo
        reemplazo de archivo.

        Raises:
            StoreConflictError: Si un documento leído cambió o un documento a
                actualizar ya no existe
        """
        with self._file_lock:
            data = self._read_raw()

            for (collection, doc_id), expected in read_versions.items():
                current = self._collection(data, collection).get(doc_id)
                found = current.get('version', 0) if current is not None else None
                if found != expected:
                    raise StoreConflictError(collection, doc_id, expected, found)

            for op, collection, doc_id, payload in writes:
                docs = self._collection(data, collection)
                current = docs.get(doc_id)
                if op == 'set':
                    doc = copy.deepcopy(payload)
                    doc.pop('id', None)
                    doc['version'] = (current.get('version', 0) if current else 0) + 1
                    docs[doc_id] = doc
                elif op == 'update':
                    if current is None:
                        raise StoreConflictError(collection, doc_id, None, None)
                    fields = copy.deepcopy(payload)
                    fields.pop('id', None)
                    fields.pop('version', None)
                    current.update(fields)
                    current['version'] = current.get('version', 0) + 1
                elif op == 'delete':
                    docs.pop(doc_id, None)
                else:
                    raise ValueError(f"Operación desconocida: {op}")

            if writes:
                self._write_raw(data)


class StoreTransaction:
    """
    Contexto de una transacción optimista.
    Las lecturas son frescas; las escrituras quedan en memoria hasta el commit.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self.read_versions: Dict[Tuple[str, str], Optional[int]] = {}
        self.writes: List[WriteOp] = []

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._store.get(collection, doc_id)
        self.read_versions[(collection, doc_id)] = doc['version'] if doc else None
        return doc

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        docs = self._store.query(collection, field, value)
        for doc in docs:
            self.read_versions[(collection, doc['id'])] = doc['version']
        return docs

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.writes.append(('set', collection, doc_id, data))

    def create(self, collection: str, data: Dict[str, Any]) -> str:
        """Registra la creación de un documento y retorna su nuevo id."""
        doc_id = self._store.new_id()
        self.writes.append(('set', collection, doc_id, data))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.writes.append(('update', collection, doc_id, fields))


class WriteBatch:
    """
    Lote de escrituras que se confirma de forma atómica.
    El commit falla si supera DocumentStore.MAX_BATCH_OPERATIONS.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._writes: List[WriteOp] = []

    def __len__(self) -> int:
        return len(self._writes)

    def create(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = self._store.new_id()
        self._writes.append(('set', collection, doc_id, data))
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._writes.append(('set', collection, doc_id, data))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._writes.append(('update', collection, doc_id, fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(('delete', collection, doc_id, None))

    def commit(self) -> None:
        """
        Raises:
            BatchLimitExceededError: Si el lote excede el techo del almacén
        """
        limit = self._store.MAX_BATCH_OPERATIONS
        if len(self._writes) > limit:
            raise BatchLimitExceededError(len(self._writes), limit)
        self._store._commit({}, self._writes)
