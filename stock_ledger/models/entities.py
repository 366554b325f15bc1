# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia.
# Las claves de persistencia usan camelCase (formato de documento del almacén).
# ==============================================================================

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from stock_ledger.errors import PermissionDeniedError, ValidationError


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class Role(str, Enum):
    """Roles de usuario (la autenticación vive fuera de este paquete)."""
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class MovementType(str, Enum):
    """Dirección de un movimiento de stock."""
    INBOUND = "inbound"    # Entrada (proveedor → almacén)
    OUTBOUND = "outbound"  # Salida (almacén → receptor)


class DebtState(str, Enum):
    """Estado de deuda de un movimiento."""
    STANDARD = "standard"  # Movimiento normal (terminal)
    PENDING = "pending"    # Salida sin documento, pendiente de cierre
    RESOLVED = "resolved"  # Deuda cerrada con fecha de resolución (terminal)


class Unit(str, Enum):
    """Unidades conocidas. Se aceptan también unidades de texto libre."""
    PCS = "pcs"
    KG = "kg"
    M = "m"
    L = "l"


class OptionKind(str, Enum):
    """Categorías del registro de opciones."""
    WAREHOUSES = "warehouses"
    RACKS = "racks"
    CATEGORIES = "categories"
    UNITS = "units"

    @property
    def product_field(self) -> str:
        """Campo del producto que toma valores de esta categoría."""
        return {
            OptionKind.WAREHOUSES: 'warehouse',
            OptionKind.RACKS: 'rack',
            OptionKind.CATEGORIES: 'category',
            OptionKind.UNITS: 'unit',
        }[self]


DEFAULT_CATEGORY = 'Otros'

# Decimales conservados en cantidades (kg, m y l admiten fracciones)
QUANTITY_DECIMALS = 6


# ==============================================================================
# UTILIDADES DE VALIDACIÓN
# ==============================================================================

def utc_now_iso() -> str:
    """Timestamp del sistema (UTC, ISO 8601)."""
    return datetime.now(timezone.utc).isoformat()


def today_iso() -> str:
    """Fecha de negocio de hoy (YYYY-MM-DD)."""
    return date.today().isoformat()


def round_quantity(value: float) -> float:
    """Redondea una cantidad para que restas sucesivas no acumulen error."""
    return round(value, QUANTITY_DECIMALS)


def parse_quantity(value: Any, field_name: str = 'quantity', allow_zero: bool = True) -> float:
    """
    Convierte un valor de entrada a cantidad numérica.

    Args:
        value: Valor recibido (número o texto)
        field_name: Nombre del campo para el mensaje de error
        allow_zero: Si False exige cantidad estrictamente positiva

    Returns:
        Cantidad como float

    Raises:
        ValidationError: Si no es un número finito, es negativo,
            o es cero cuando allow_zero=False
    """
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationError(f"{field_name} es obligatorio y debe ser numérico")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} debe ser numérico: {value!r}")
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} debe ser un número finito")
    if number < 0 or (number == 0 and not allow_zero):
        limit = "mayor o igual a 0" if allow_zero else "mayor que 0"
        raise ValidationError(f"{field_name} debe ser {limit}")
    number = round_quantity(number)
    if number == 0 and not allow_zero:
        raise ValidationError(f"{field_name} debe ser mayor que 0")
    return number


def normalize_key(value: Optional[str]) -> str:
    """Clave de comparación: sin espacios en los extremos y sin mayúsculas."""
    return (value or '').strip().casefold()


def text_value(data: Dict[str, Any], key: str) -> str:
    """
    Lee un campo de texto de un documento recibido.

    Raises:
        ValidationError: Si el valor es una lista u objeto
    """
    value = data.get(key)
    if value is None:
        return ''
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{key} debe ser texto")
    return str(value)


# ==============================================================================
# SESIÓN
# ==============================================================================

@dataclass(frozen=True)
class SessionContext:
    """
    Usuario que ejecuta una operación. Se pasa explícitamente a cada
    servicio que modifica datos.

    Attributes:
        username: Identificador del usuario autenticado
        role: Rol que define sus permisos
    """
    username: str
    role: Role = Role.EDITOR

    def can_edit(self) -> bool:
        """Verifica si puede registrar movimientos e importar."""
        return self.role in (Role.ADMIN, Role.EDITOR)

    def ensure_can_edit(self) -> None:
        if not self.can_edit():
            raise PermissionDeniedError(f"El usuario {self.username} solo tiene acceso de lectura")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionContext':
        """Crea instancia desde la sesión HTTP."""
        try:
            role = Role(data.get('role', 'viewer'))
        except ValueError:
            role = Role.VIEWER
        return cls(username=data.get('user', ''), role=role)


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

def is_low(product: 'Product') -> bool:
    """Stock bajo: solo para productos con seguimiento activado."""
    return product.is_low_stock_tracked and product.quantity <= product.min_quantity


@dataclass
class Product:
    """
    Producto del inventario.

    Attributes:
        id: Identificador opaco asignado por el almacén
        nomenclature: Código corto (clave principal de deduplicación)
        name: Descripción libre (clave secundaria de deduplicación)
        category: Categoría de clasificación
        quantity: Stock actual, nunca negativo
        unit: Unidad de medida (pcs, kg, m, l o texto libre)
        warehouse: Almacén
        rack: Estante
        min_quantity: Umbral de alerta de stock bajo
        is_low_stock_tracked: Activa la alerta de stock bajo
        date_added: Fecha de alta (negocio)
        last_updated: Timestamp de la última modificación (sistema)
        images: Referencias de imagen del producto
        version: Contador de versiones mantenido por el almacén
    """
    id: str
    nomenclature: str
    name: str
    category: str = ''
    quantity: float = 0.0
    unit: str = Unit.PCS.value
    warehouse: str = ''
    rack: str = ''
    min_quantity: float = 0.0
    is_low_stock_tracked: bool = False
    date_added: str = ''
    last_updated: str = ''
    images: List[str] = field(default_factory=list)
    version: int = 0

    @property
    def is_low_stock(self) -> bool:
        """Se recalcula en cada lectura, nunca se persiste."""
        return is_low(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a documento para persistencia (sin id ni versión)."""
        return {
            'nomenclature': self.nomenclature,
            'name': self.name,
            'category': self.category,
            'quantity': self.quantity,
            'unit': self.unit,
            'warehouse': self.warehouse,
            'rack': self.rack,
            'minQuantity': self.min_quantity,
            'isLowStockTracked': self.is_low_stock_tracked,
            'dateAdded': self.date_added,
            'lastUpdated': self.last_updated,
            'images': list(self.images),
        }

    def to_api_dict(self) -> Dict[str, Any]:
        """Representación para la capa HTTP (incluye el predicado derivado)."""
        data = self.to_dict()
        data['id'] = self.id
        data['isLowStock'] = self.is_low_stock
        return data

    @classmethod
    def from_dict(cls, product_id: str, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde un documento del almacén."""
        return cls(
            id=product_id,
            nomenclature=data.get('nomenclature', ''),
            name=data.get('name', ''),
            category=data.get('category', ''),
            quantity=round_quantity(float(data.get('quantity', 0) or 0)),
            unit=data.get('unit') or Unit.PCS.value,
            warehouse=data.get('warehouse', ''),
            rack=data.get('rack', ''),
            min_quantity=float(data.get('minQuantity', 0) or 0),
            is_low_stock_tracked=bool(data.get('isLowStockTracked', False)),
            date_added=data.get('dateAdded', ''),
            last_updated=data.get('lastUpdated', ''),
            images=list(data.get('images') or []),
            version=data.get('version', 0),
        )


@dataclass
class MovementMetadata:
    """
    Datos del formulario que acompañan a un movimiento.

    Attributes:
        date: Fecha de negocio del movimiento
        receiver: Proveedor (entrada) o receptor (salida)
        notes: Observaciones
        images: Fotos de documentos o carga
        is_debt: Salida sin comprobante (solo válido en salidas)
    """
    date: str = ''
    receiver: str = ''
    notes: str = ''
    images: List[str] = field(default_factory=list)
    is_debt: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MovementMetadata':
        images = data.get('images') or []
        if not isinstance(images, list):
            raise ValidationError("images debe ser una lista")
        return cls(
            date=text_value(data, 'date') or today_iso(),
            receiver=text_value(data, 'receiver'),
            notes=text_value(data, 'notes'),
            images=[str(i) for i in images],
            is_debt=bool(data.get('isDebt', False)),
        )


@dataclass
class Transaction:
    """
    Registro inmutable de un movimiento de stock.
    Solo los campos de deuda pueden cambiar después de creado.

    Attributes:
        id: Identificador asignado por el almacén
        product_id: Referencia débil al producto
        product_name: Nombre del producto al momento del movimiento
        product_nomenclature: Código del producto al momento del movimiento
        type: Entrada o salida
        quantity: Cantidad movida (> 0)
        unit: Unidad del producto al momento del movimiento
        date: Fecha de negocio
        receiver: Proveedor o receptor
        notes: Observaciones
        images: Fotos adjuntas
        is_debt: Salida pendiente de comprobante
        resolution_image: Comprobante entregado al cerrar la deuda
        resolution_date: Fecha de cierre de la deuda
        created_by: Usuario que registró el movimiento
    """
    id: str
    product_id: str
    product_name: str
    product_nomenclature: str
    type: MovementType
    quantity: float
    unit: str = Unit.PCS.value
    date: str = ''
    receiver: str = ''
    notes: str = ''
    images: List[str] = field(default_factory=list)
    is_debt: bool = False
    resolution_image: Optional[str] = None
    resolution_date: Optional[str] = None
    created_by: str = ''

    @property
    def debt_state(self) -> DebtState:
        if self.is_debt:
            return DebtState.PENDING
        if self.resolution_date:
            return DebtState.RESOLVED
        return DebtState.STANDARD

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a documento para persistencia."""
        return {
            'productId': self.product_id,
            'productName': self.product_name,
            'productNomenclature': self.product_nomenclature,
            'type': self.type.value,
            'quantity': self.quantity,
            'unit': self.unit,
            'date': self.date,
            'receiver': self.receiver,
            'notes': self.notes,
            'images': list(self.images),
            'isDebt': self.is_debt,
            'resolutionImage': self.resolution_image,
            'resolutionDate': self.resolution_date,
            'createdBy': self.created_by,
        }

    def to_api_dict(self) -> Dict[str, Any]:
        data = self.to_dict()
        data['id'] = self.id
        data['debtState'] = self.debt_state.value
        return data

    @classmethod
    def from_dict(cls, transaction_id: str, data: Dict[str, Any]) -> 'Transaction':
        """Crea instancia desde un documento del almacén."""
        return cls(
            id=transaction_id,
            product_id=data.get('productId', ''),
            product_name=data.get('productName', ''),
            product_nomenclature=data.get('productNomenclature', ''),
            type=MovementType(data.get('type', 'inbound')),
            quantity=float(data.get('quantity', 0) or 0),
            unit=data.get('unit') or Unit.PCS.value,
            date=data.get('date', ''),
            receiver=data.get('receiver', '') or '',
            notes=data.get('notes', '') or '',
            images=list(data.get('images') or []),
            is_debt=bool(data.get('isDebt', False)),
            resolution_image=data.get('resolutionImage'),
            resolution_date=data.get('resolutionDate'),
            created_by=data.get('createdBy', ''),
        )


# ==============================================================================
# ENTIDADES DE IMPORTACIÓN
# ==============================================================================

@dataclass
class ScannedItem:
    """
    Candidato a producto producido por OCR o por una hoja de cálculo.
    Nunca tiene id; se descarta tras la importación o la cancelación.

    Attributes:
        nomenclature: Código leído
        name: Nombre leído
        category: Categoría leída (puede venir vacía)
        warehouse: Almacén leído (puede venir vacío)
        unit: Unidad leída (puede venir vacía)
        quantity: Cantidad leída
        selected: Marca de selección en la pantalla de revisión
    """
    nomenclature: str = ''
    name: str = ''
    category: str = ''
    warehouse: str = ''
    unit: str = ''
    quantity: float = 0.0
    selected: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nomenclature': self.nomenclature,
            'name': self.name,
            'category': self.category,
            'warehouse': self.warehouse,
            'unit': self.unit,
            'quantity': self.quantity,
            'selected': self.selected,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScannedItem':
        """Crea instancia desde la salida normalizada de OCR/Excel."""
        raw_qty = data.get('quantity', 0)
        try:
            quantity = float(raw_qty) if raw_qty not in (None, '') else 0.0
        except (TypeError, ValueError):
            raise ValidationError(f"Cantidad inválida en el candidato: {raw_qty!r}")
        return cls(
            nomenclature=text_value(data, 'nomenclature'),
            name=text_value(data, 'name'),
            category=text_value(data, 'category'),
            warehouse=text_value(data, 'warehouse'),
            unit=text_value(data, 'unit'),
            quantity=quantity,
            selected=bool(data.get('selected', True)),
        )

    def with_changes(self, **changes: Any) -> 'ScannedItem':
        return replace(self, **changes)


@dataclass
class ImportContext:
    """
    Valores por defecto del formulario de producto, usados para completar
    los candidatos que no los traen.
    """
    category: str = ''
    warehouse: str = ''
    rack: str = ''
    min_quantity: float = 0.0
    date_added: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImportContext':
        return cls(
            category=text_value(data, 'category'),
            warehouse=text_value(data, 'warehouse'),
            rack=text_value(data, 'rack'),
            min_quantity=parse_quantity(data.get('minQuantity', 0) or 0, 'minQuantity'),
            date_added=text_value(data, 'dateAdded') or today_iso(),
        )


@dataclass
class ImportSummary:
    """
    Resultado de una importación.

    Attributes:
        inserted: Productos creados (incluye lotes confirmados antes de un fallo)
        skipped_duplicate: Candidatos descartados por existir en el catálogo
        failed_at_chunk: Número de lote (desde 1) que falló, o None
        error: Mensaje del fallo del lote, si lo hubo
    """
    inserted: int = 0
    skipped_duplicate: int = 0
    failed_at_chunk: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_partial(self) -> bool:
        return self.failed_at_chunk is not None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'inserted': self.inserted,
            'skippedDuplicate': self.skipped_duplicate,
        }
        if self.failed_at_chunk is not None:
            d['failedAtChunk'] = self.failed_at_chunk
            d['error'] = self.error
        return d
