# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único donde se eligen las implementaciones concretas de los
# repositorios y se conectan con los servicios. Facilita:
#   - Testing (un contenedor por test sobre un directorio temporal)
#   - Cambiar el almacenamiento sin tocar los servicios
#
# Cada app Flask crea su propio contenedor; no hay instancia global.
# ==============================================================================

import os
from typing import Optional

from stock_ledger.repositories import (
    AuditRepository,
    CatalogRepository,
    DocumentStore,
    IRecognitionService,
    OptionsRepository,
)
from stock_ledger.services import (
    AuditService,
    DebtService,
    ExportService,
    ImportService,
    InventoryService,
    MovementService,
    OptionService,
    ReportService,
    SpreadsheetParser,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Uso:
        container = AppContainer(base_path='/var/lib/stock')
        container.movement_service.apply_movement(...)
    """

    STORE_FILE = 'store.json'

    def __init__(
        self,
        base_path: str,
        chunk_size: int = ImportService.DEFAULT_CHUNK_SIZE,
        max_attempts: int = DocumentStore.DEFAULT_MAX_ATTEMPTS,
        recognition_service: Optional[IRecognitionService] = None
    ):
        """
        Args:
            base_path: Directorio de datos (store.json, audit.json)
            chunk_size: Productos por lote de importación
            max_attempts: Reintentos de transacciones optimistas
            recognition_service: Servicio OCR (opcional)
        """
        self._base_path = base_path
        self._chunk_size = chunk_size
        self._max_attempts = max_attempts
        self.recognition_service = recognition_service

        # Repositorios (lazy loading)
        self._store: Optional[DocumentStore] = None
        self._catalog_repo: Optional[CatalogRepository] = None
        self._options_repo: Optional[OptionsRepository] = None
        self._audit_repo: Optional[AuditRepository] = None

        # Servicios (lazy loading)
        self._audit_service: Optional[AuditService] = None
        self._movement_service: Optional[MovementService] = None
        self._debt_service: Optional[DebtService] = None
        self._import_service: Optional[ImportService] = None
        self._inventory_service: Optional[InventoryService] = None
        self._option_service: Optional[OptionService] = None
        self._report_service: Optional[ReportService] = None
        self._spreadsheet_parser: Optional[SpreadsheetParser] = None
        self._export_service: Optional[ExportService] = None

    @property
    def base_path(self) -> str:
        return self._base_path

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def store(self) -> DocumentStore:
        if self._store is None:
            self._store = DocumentStore(
                os.path.join(self._base_path, self.STORE_FILE),
                max_attempts=self._max_attempts
            )
        return self._store

    @property
    def catalog_repo(self) -> CatalogRepository:
        if self._catalog_repo is None:
            self._catalog_repo = CatalogRepository(self.store)
        return self._catalog_repo

    @property
    def options_repo(self) -> OptionsRepository:
        if self._options_repo is None:
            self._options_repo = OptionsRepository(self.store)
        return self._options_repo

    @property
    def audit_repo(self) -> AuditRepository:
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self._base_path)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def movement_service(self) -> MovementService:
        if self._movement_service is None:
            self._movement_service = MovementService(self.catalog_repo, self.audit_service)
        return self._movement_service

    @property
    def debt_service(self) -> DebtService:
        if self._debt_service is None:
            self._debt_service = DebtService(self.catalog_repo, self.audit_service)
        return self._debt_service

    @property
    def import_service(self) -> ImportService:
        if self._import_service is None:
            self._import_service = ImportService(
                self.catalog_repo,
                self.options_repo,
                self.audit_service,
                chunk_size=self._chunk_size
            )
        return self._import_service

    @property
    def inventory_service(self) -> InventoryService:
        if self._inventory_service is None:
            self._inventory_service = InventoryService(self.catalog_repo, self.audit_service)
        return self._inventory_service

    @property
    def option_service(self) -> OptionService:
        if self._option_service is None:
            self._option_service = OptionService(self.options_repo, self.audit_service)
        return self._option_service

    @property
    def report_service(self) -> ReportService:
        if self._report_service is None:
            self._report_service = ReportService(self.catalog_repo)
        return self._report_service

    @property
    def spreadsheet_parser(self) -> SpreadsheetParser:
        if self._spreadsheet_parser is None:
            self._spreadsheet_parser = SpreadsheetParser()
        return self._spreadsheet_parser

    @property
    def export_service(self) -> ExportService:
        if self._export_service is None:
            self._export_service = ExportService(
                self.catalog_repo, self.options_repo, self._base_path, self.audit_service
            )
        return self._export_service
