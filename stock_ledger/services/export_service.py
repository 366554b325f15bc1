# ==============================================================================
# SERVICIO DE EXPORTACIÓN Y RESPALDO
# ==============================================================================
# Vuelca el libro completo (productos, movimientos y opciones) a un único
# documento JSON, para descarga o como respaldo diario en disco.
#
# FORMATO DEL RESPALDO: backups/backup_YYYY-MM-DD.json
# Se conservan los últimos MAX_BACKUPS; los más antiguos se eliminan.
# ==============================================================================

import json
import os
from datetime import date, datetime
from typing import Any, Dict, List

from stock_ledger.models import OptionKind, SessionContext, utc_now_iso
from stock_ledger.repositories.interfaces import ICatalogStore, IOptionRegistry
from stock_ledger.services.audit_service import AuditService


class ExportService:
    """
    Exportación completa del libro.

    Responsabilidades:
    - Armar la instantánea JSON (productos, movimientos, opciones)
    - Guardar un respaldo por día y rotar los antiguos
    """

    BACKUP_DIR_NAME = 'backups'

    # Cantidad de respaldos a mantener
    MAX_BACKUPS = 7

    def __init__(
        self,
        catalog: ICatalogStore,
        options: IOptionRegistry,
        base_path: str,
        audit_service: AuditService = None
    ):
        """
        Args:
            catalog: Productos y movimientos
            options: Registro de opciones
            base_path: Directorio de datos (los respaldos van en backups/)
            audit_service: Servicio de auditoría (opcional)
        """
        self.catalog = catalog
        self.options = options
        self.backup_root = os.path.join(base_path, self.BACKUP_DIR_NAME)
        self.audit_service = audit_service

    # =========================================================================
    # EXPORTACIÓN
    # =========================================================================

    def build_export(self) -> Dict[str, Any]:
        """
        Returns:
            {"exportedAt", "products", "transactions", "settings"}
        """
        return {
            'exportedAt': utc_now_iso(),
            'products': [p.to_api_dict() for p in self.catalog.list_products()],
            'transactions': [t.to_api_dict() for t in self.catalog.list_transactions()],
            'settings': {kind.value: self.options.get_options(kind) for kind in OptionKind},
        }

    def to_json(self) -> str:
        return json.dumps(self.build_export(), indent=2, ensure_ascii=False)

    # =========================================================================
    # RESPALDOS EN DISCO
    # =========================================================================

    def _backup_path(self, day: date) -> str:
        return os.path.join(self.backup_root, f'backup_{day.isoformat()}.json')

    def list_backups(self) -> List[str]:
        """Nombres de respaldo válidos, el más reciente primero."""
        if not os.path.isdir(self.backup_root):
            return []
        backups = []
        for name in os.listdir(self.backup_root):
            if not (name.startswith('backup_') and name.endswith('.json')):
                continue
            try:
                datetime.strptime(name[7:-5], '%Y-%m-%d')
            except ValueError:
                continue
            backups.append(name)
        backups.sort(reverse=True)
        return backups

    def _rotate(self) -> int:
        deleted = 0
        for name in self.list_backups()[self.MAX_BACKUPS:]:
            os.remove(os.path.join(self.backup_root, name))
            deleted += 1
        return deleted

    def save_backup(self, session: SessionContext, day: date = None) -> Dict[str, Any]:
        """
        Guarda el respaldo del día (reemplaza el existente) y rota los antiguos.

        Args:
            session: Usuario que pide el respaldo
            day: Fecha del archivo (hoy si no se indica)

        Returns:
            {"filename", "products", "transactions", "deleted"}

        Raises:
            PermissionDeniedError: Si la sesión es de solo lectura
        """
        session.ensure_can_edit()
        os.makedirs(self.backup_root, exist_ok=True)

        snapshot = self.build_export()
        path = self._backup_path(day or date.today())
        temp_path = path + '.tmp'
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(snapshot, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, path)

        result = {
            'filename': os.path.basename(path),
            'products': len(snapshot['products']),
            'transactions': len(snapshot['transactions']),
            'deleted': self._rotate(),
        }
        if self.audit_service:
            self.audit_service.log_backup(session.username, result)
        return result
