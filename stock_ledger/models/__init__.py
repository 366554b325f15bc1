# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Fácil serialización/deserialización para el almacén de documentos
#   - Independiente del mecanismo de persistencia
# ==============================================================================

from .entities import (
    # Sesión
    Role,
    SessionContext,

    # Inventario
    Product,
    Unit,
    OptionKind,
    DEFAULT_CATEGORY,
    is_low,

    # Movimientos
    MovementType,
    MovementMetadata,
    Transaction,
    DebtState,

    # Importación
    ScannedItem,
    ImportContext,
    ImportSummary,

    # Utilidades
    parse_quantity,
    round_quantity,
    normalize_key,
    utc_now_iso,
    today_iso,
)
from .filters import (
    CandidateEdit,
    NomenclatureEdit,
    NameEdit,
    CategoryEdit,
    WarehouseEdit,
    UnitEdit,
    QuantityEdit,
    apply_edit,
    edit_from_dict,
    ReportFilter,
    CategoryFilter,
    WarehouseFilter,
    RackFilter,
    UnitFilter,
    QuantityRangeFilter,
    SupplierFilter,
    ReceiverFilter,
    DebtOnlyFilter,
    DateRange,
    InboundDateFilter,
    OutboundDateFilter,
    filter_from_dict,
    filters_from_list,
)

__all__ = [
    # Sesión
    'Role',
    'SessionContext',

    # Inventario
    'Product',
    'Unit',
    'OptionKind',
    'DEFAULT_CATEGORY',
    'is_low',

    # Movimientos
    'MovementType',
    'MovementMetadata',
    'Transaction',
    'DebtState',

    # Importación
    'ScannedItem',
    'ImportContext',
    'ImportSummary',

    # Utilidades
    'parse_quantity',
    'round_quantity',
    'normalize_key',
    'utc_now_iso',
    'today_iso',

    # Ediciones de candidatos
    'CandidateEdit',
    'NomenclatureEdit',
    'NameEdit',
    'CategoryEdit',
    'WarehouseEdit',
    'UnitEdit',
    'QuantityEdit',
    'apply_edit',
    'edit_from_dict',

    # Filtros de reportes
    'ReportFilter',
    'CategoryFilter',
    'WarehouseFilter',
    'RackFilter',
    'UnitFilter',
    'QuantityRangeFilter',
    'SupplierFilter',
    'ReceiverFilter',
    'DebtOnlyFilter',
    'DateRange',
    'InboundDateFilter',
    'OutboundDateFilter',
    'filter_from_dict',
    'filters_from_list',
]
