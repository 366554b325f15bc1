# ==============================================================================
# REPOSITORIO DE OPCIONES
# ==============================================================================
# Listas de valores sugeridos por categoría (almacenes, estantes, categorías,
# unidades), guardadas en el documento settings/global.
# ==============================================================================

from typing import Dict, List, Union

from stock_ledger.errors import ValidationError
from stock_ledger.models import OptionKind, normalize_key, utc_now_iso
from stock_ledger.repositories.document_store import DocumentStore, StoreTransaction

SETTINGS = 'settings'
SETTINGS_DOC_ID = 'global'

DEFAULT_OPTIONS: Dict[str, List[str]] = {
    OptionKind.WAREHOUSES.value: [
        'Almacén Central', 'Almacén N4-Puerta 1', 'Almacén N4-Puerta 2', 'Almacén N6', 'Perímetro Exterior',
    ],
    OptionKind.RACKS.value: [f'Estante N{i}' for i in range(1, 51)],
    OptionKind.CATEGORIES.value: ['Electrónica', 'Equipamiento', 'Materiales', 'Otros'],
    OptionKind.UNITS.value: ['pcs', 'kg', 'm', 'l'],
}


def to_option_kind(kind: Union[str, OptionKind]) -> OptionKind:
    """
    Raises:
        ValidationError: Si la categoría no existe
    """
    try:
        return OptionKind(kind)
    except ValueError:
        raise ValidationError(f"Tipo de opción desconocido: {kind!r}")


def _contains(values: List[str], value: str) -> bool:
    key = normalize_key(value)
    return any(normalize_key(v) == key for v in values)


class OptionsRepository:
    """
    Registro de opciones.

    Formato en settings/global:
    {
        "warehouses": ["Almacén Central", ...],
        "racks": [...],
        "categories": [...],
        "units": [...]
    }
    """

    # Las altas concurrentes compiten por el mismo documento
    ADD_MAX_ATTEMPTS = 20

    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self, txn: StoreTransaction) -> Dict[str, List[str]]:
        doc = txn.get(SETTINGS, SETTINGS_DOC_ID)
        if doc is None:
            return {k: list(v) for k, v in DEFAULT_OPTIONS.items()}
        return {k: list(doc[k] if doc.get(k) is not None else DEFAULT_OPTIONS[k]) for k in DEFAULT_OPTIONS}

    def get_options(self, kind: Union[str, OptionKind]) -> List[str]:
        """
        Obtiene la lista de una categoría.
        Si el documento no existe se guarda con los valores por defecto.
        """
        kind = to_option_kind(kind)
        doc = self.store.get(SETTINGS, SETTINGS_DOC_ID)
        if doc is None:
            self.store.run_transaction(self._seed_defaults)
            return list(DEFAULT_OPTIONS[kind.value])
        values = doc.get(kind.value)
        return list(values if values is not None else DEFAULT_OPTIONS[kind.value])

    def _seed_defaults(self, txn: StoreTransaction) -> None:
        if txn.get(SETTINGS, SETTINGS_DOC_ID) is None:
            txn.set(SETTINGS, SETTINGS_DOC_ID, {k: list(v) for k, v in DEFAULT_OPTIONS.items()})

    def add_option_if_absent(self, kind: Union[str, OptionKind], value: str) -> List[str]:
        """
        Agrega un valor si no existe (comparación sin mayúsculas).
        Idempotente: puede ejecutarse en paralelo con otras altas.

        Returns:
            Lista resultante de la categoría
        """
        kind = to_option_kind(kind)
        value = (value or '').strip()
        if not value:
            raise ValidationError("El valor de la opción no puede estar vacío")

        def add(txn: StoreTransaction) -> List[str]:
            options = self._load(txn)
            values = options[kind.value]
            if not _contains(values, value):
                values.append(value)
                options['updatedAt'] = utc_now_iso()
                txn.set(SETTINGS, SETTINGS_DOC_ID, options)
            return values

        return self.store.run_transaction(add, max_attempts=self.ADD_MAX_ATTEMPTS)

    def delete_option(self, kind: Union[str, OptionKind], value: str) -> List[str]:
        """Quita un valor de la lista. Los productos no se modifican."""
        kind = to_option_kind(kind)

        def remove(txn: StoreTransaction) -> List[str]:
            options = self._load(txn)
            values = [v for v in options[kind.value] if v != value]
            options[kind.value] = values
            txn.set(SETTINGS, SETTINGS_DOC_ID, options)
            return values

        return self.store.run_transaction(remove)

    def rename_option(self, kind: Union[str, OptionKind], old_value: str, new_value: str) -> List[str]:
        """
        Renombra un valor y propaga el nuevo nombre a los productos que
        usaban el anterior, todo en un mismo commit.

        Returns:
            Lista resultante (sin cambios si old_value no existía)
        """
        kind = to_option_kind(kind)
        new_value = (new_value or '').strip()
        if not new_value:
            raise ValidationError("El nuevo valor no puede estar vacío")
        product_field = kind.product_field

        def rename(txn: StoreTransaction) -> List[str]:
            options = self._load(txn)
            values = options[kind.value]
            if old_value not in values:
                return values
            values[values.index(old_value)] = new_value
            txn.set(SETTINGS, SETTINGS_DOC_ID, options)
            now = utc_now_iso()
            for doc in txn.query('products', product_field, old_value):
                txn.update('products', doc['id'], {product_field: new_value, 'lastUpdated': now})
            return values

        return self.store.run_transaction(rename)
