# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (archivos JSON).
# Los servicios dependen de las interfaces, no de estas clases.
#
# ESTRUCTURA:
# ├── interfaces.py            → Protocolos (contratos)
# ├── base.py                  → Clases base JSON (JsonFileRepository, JsonListRepository)
# ├── document_store.py        → Almacén de documentos con transacciones optimistas
# ├── catalog_repository.py    → Productos y movimientos
# ├── options_repository.py    → Registro de opciones (settings/global)
# └── audit_repository.py      → Acceso a audit.json
# ==============================================================================

# Interfaces
from .interfaces import (
    ICatalogStore,
    IOptionRegistry,
    IAuditRepository,
    IRecognitionService,
    ITabularParser,
)

# Implementaciones concretas (JSON)
from .base import JsonFileRepository, JsonListRepository
from .document_store import DocumentStore, StoreTransaction, WriteBatch
from .catalog_repository import CatalogRepository, CatalogTransaction
from .options_repository import OptionsRepository, DEFAULT_OPTIONS, to_option_kind
from .audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'ICatalogStore',
    'IOptionRegistry',
    'IAuditRepository',
    'IRecognitionService',
    'ITabularParser',

    # Clases base
    'JsonFileRepository',
    'JsonListRepository',

    # Implementaciones JSON
    'DocumentStore',
    'StoreTransaction',
    'WriteBatch',
    'CatalogRepository',
    'CatalogTransaction',
    'OptionsRepository',
    'DEFAULT_OPTIONS',
    'to_option_kind',
    'AuditRepository',
]
