# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Registro de actividad del libro en audit.json, separado de store.json para
# que un error al auditar nunca afecte un movimiento ya confirmado.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from stock_ledger.models import utc_now_iso
from stock_ledger.repositories.base import JsonListRepository


class AuditRepository(JsonListRepository):
    """
    Eventos de actividad, el más reciente primero.

    Formato de cada evento:
        {
            "type": "STOCK",
            "user": "ana",
            "message": "Salida de stock: -4 pcs Cable UTP (A1) - Nuevo stock: 6 - Por ana",
            "timestamp": "2024-01-01T10:00:00+00:00",
            "related_id": "<id del producto o movimiento>",
            "details": {...}
        }
    """

    FILE_NAME = 'audit.json'

    # Eventos conservados; los más antiguos se descartan
    MAX_LOGS = 10000

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, self.FILE_NAME))

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Args:
            log_type: STOCK, DEUDA, IMPORTACION, PRODUCTO u OPCIONES
            user: Usuario de la sesión ('sistema' si no hay)
            message: Texto legible del evento
            related_id: Producto, movimiento o categoría afectada
            details: Datos estructurados del evento
        """
        self.prepend({
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': utc_now_iso(),
            'related_id': related_id,
            'details': details or {},
        }, self.MAX_LOGS)

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return [entry for entry in self.entries() if entry.get('type') == log_type]

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.entries()[:max(limit, 0)]
