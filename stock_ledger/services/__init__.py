# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones antes de tocar el almacén
# 3. Las rutas solo llaman a servicios
# 4. Toda operación que modifica datos recibe un SessionContext explícito
#
# ESTRUCTURA:
# ├── movement_service.py    → Entradas y salidas (commit atómico)
# ├── debt_service.py        → Deudas de documentación
# ├── import_service.py      → Importación masiva con deduplicación por lotes
# ├── duplicate_grouper.py   → Colores de duplicados en la revisión
# ├── spreadsheet_service.py → Lectura de .xlsx
# ├── inventory_service.py   → Alta y edición de productos
# ├── option_service.py      → Registro de opciones
# ├── report_service.py      → Panel y reportes personalizados
# ├── export_service.py      → Exportación JSON y respaldos diarios
# └── audit_service.py       → Registro de actividad
# ==============================================================================

from stock_ledger.services.audit_service import AuditService
from stock_ledger.services.movement_service import MovementService, to_movement_type
from stock_ledger.services.debt_service import DebtService
from stock_ledger.services.import_service import ImportService
from stock_ledger.services.duplicate_grouper import DUPLICATE_COLORS, compute_duplicate_clusters
from stock_ledger.services.spreadsheet_service import SpreadsheetParser
from stock_ledger.services.inventory_service import InventoryService
from stock_ledger.services.option_service import OptionService
from stock_ledger.services.report_service import ReportService
from stock_ledger.services.export_service import ExportService

__all__ = [
    'AuditService',
    'MovementService',
    'to_movement_type',
    'DebtService',
    'ImportService',
    'DUPLICATE_COLORS',
    'compute_duplicate_clusters',
    'SpreadsheetParser',
    'InventoryService',
    'OptionService',
    'ReportService',
    'ExportService',
]
