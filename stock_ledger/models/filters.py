# ==============================================================================
# TIPOS CERRADOS PARA REVISIÓN Y REPORTES
# ==============================================================================
# - CandidateEdit: una variante por campo editable de un candidato importado
# - ReportFilter: una variante por criterio del reporte personalizado
# Cada variante lleva su propio payload tipado; no hay diccionarios abiertos.
# ==============================================================================

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from stock_ledger.errors import ValidationError
from stock_ledger.models.entities import ScannedItem, parse_quantity


# ==============================================================================
# EDICIONES DE CANDIDATOS
# ==============================================================================

@dataclass(frozen=True)
class NomenclatureEdit:
    value: str


@dataclass(frozen=True)
class NameEdit:
    value: str


@dataclass(frozen=True)
class CategoryEdit:
    value: str


@dataclass(frozen=True)
class WarehouseEdit:
    value: str


@dataclass(frozen=True)
class UnitEdit:
    value: str


@dataclass(frozen=True)
class QuantityEdit:
    value: float


CandidateEdit = Union[NomenclatureEdit, NameEdit, CategoryEdit, WarehouseEdit, UnitEdit, QuantityEdit]

_TEXT_EDITS = {
    NomenclatureEdit: 'nomenclature',
    NameEdit: 'name',
    CategoryEdit: 'category',
    WarehouseEdit: 'warehouse',
    UnitEdit: 'unit',
}


def apply_edit(item: ScannedItem, edit: CandidateEdit) -> ScannedItem:
    """
    Aplica una edición de la pantalla de revisión a un candidato.

    Args:
        item: Candidato original (no se modifica)
        edit: Variante de edición

    Returns:
        Nuevo candidato con el campo actualizado
    """
    if isinstance(edit, QuantityEdit):
        return item.with_changes(quantity=parse_quantity(edit.value))
    field_name = _TEXT_EDITS.get(type(edit))
    if field_name is None:
        raise ValidationError(f"Edición no soportada: {edit!r}")
    return item.with_changes(**{field_name: str(edit.value)})


# ==============================================================================
# FILTROS DE REPORTES
# ==============================================================================

@dataclass(frozen=True)
class CategoryFilter:
    category: str


@dataclass(frozen=True)
class WarehouseFilter:
    warehouse: str


@dataclass(frozen=True)
class RackFilter:
    rack: str


@dataclass(frozen=True)
class UnitFilter:
    unit: str


@dataclass(frozen=True)
class QuantityRangeFilter:
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def matches(self, quantity: float) -> bool:
        if self.minimum is not None and quantity < self.minimum:
            return False
        if self.maximum is not None and quantity > self.maximum:
            return False
        return True


@dataclass(frozen=True)
class SupplierFilter:
    """Texto contenido en el proveedor de una entrada."""
    text: str


@dataclass(frozen=True)
class ReceiverFilter:
    """Texto contenido en el receptor de una salida."""
    text: str


@dataclass(frozen=True)
class DebtOnlyFilter:
    pass


@dataclass(frozen=True)
class DateRange:
    """Rango inclusivo de fechas ISO. Sin date_to se compara fecha exacta."""
    date_from: str
    date_to: Optional[str] = None

    def contains(self, value: str) -> bool:
        if not value:
            return False
        if self.date_to:
            return self.date_from <= value <= self.date_to
        return value == self.date_from


@dataclass(frozen=True)
class InboundDateFilter:
    range: DateRange


@dataclass(frozen=True)
class OutboundDateFilter:
    range: DateRange


ReportFilter = Union[
    CategoryFilter, WarehouseFilter, RackFilter, UnitFilter, QuantityRangeFilter,
    SupplierFilter, ReceiverFilter, DebtOnlyFilter, InboundDateFilter, OutboundDateFilter,
]


def _optional_number(value: Any, name: str) -> Optional[float]:
    if value in (None, ''):
        return None
    return parse_quantity(value, name)


def _date_range(data: Dict[str, Any]) -> DateRange:
    date_from = data.get('from')
    if not date_from:
        raise ValidationError("El filtro de fecha requiere 'from'")
    return DateRange(date_from=date_from, date_to=data.get('to') or None)


def filter_from_dict(data: Dict[str, Any]) -> ReportFilter:
    """
    Construye un filtro desde JSON: {"kind": "...", ...payload}.

    Raises:
        ValidationError: Si el tipo es desconocido o falta el payload
    """
    kind = data.get('kind')
    try:
        if kind == 'category':
            return CategoryFilter(data['value'])
        if kind == 'warehouse':
            return WarehouseFilter(data['value'])
        if kind == 'rack':
            return RackFilter(data['value'])
        if kind == 'unit':
            return UnitFilter(data['value'])
        if kind == 'quantity':
            return QuantityRangeFilter(
                minimum=_optional_number(data.get('min'), 'min'),
                maximum=_optional_number(data.get('max'), 'max'),
            )
        if kind == 'supplier':
            return SupplierFilter(data['value'])
        if kind == 'receiver':
            return ReceiverFilter(data['value'])
        if kind == 'debt':
            return DebtOnlyFilter()
        if kind == 'inboundDate':
            return InboundDateFilter(_date_range(data))
        if kind == 'outboundDate':
            return OutboundDateFilter(_date_range(data))
    except KeyError as e:
        raise ValidationError(f"Falta el campo {e.args[0]!r} en el filtro {kind!r}")
    raise ValidationError(f"Tipo de filtro desconocido: {kind!r}")


def filters_from_list(raw: List[Dict[str, Any]]) -> List[ReportFilter]:
    if not isinstance(raw, list):
        raise ValidationError("filters debe ser una lista")
    if not all(isinstance(item, dict) for item in raw):
        raise ValidationError("Cada filtro debe ser un objeto JSON")
    return [filter_from_dict(item) for item in raw]


def edit_from_dict(data: Dict[str, Any]) -> CandidateEdit:
    """Construye una edición desde JSON: {"field": "...", "value": ...}."""
    field_name = data.get('field')
    value = data.get('value')
    if field_name == 'quantity':
        return QuantityEdit(parse_quantity(value))
    for edit_type, name in _TEXT_EDITS.items():
        if name == field_name:
            return edit_type(str(value or ''))
    raise ValidationError(f"Campo no editable: {field_name!r}")
