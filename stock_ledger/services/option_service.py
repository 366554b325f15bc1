# ==============================================================================
# SERVICIO DE OPCIONES
# ==============================================================================
# Administración del registro de opciones (almacenes, estantes, categorías,
# unidades) desde la pantalla de configuración.
# ==============================================================================

from typing import List

from stock_ledger.models import SessionContext
from stock_ledger.repositories.interfaces import IOptionRegistry
from stock_ledger.repositories.options_repository import to_option_kind
from stock_ledger.services.audit_service import AuditService


class OptionService:
    """Consulta y cambios del registro de opciones con auditoría."""

    def __init__(self, options: IOptionRegistry, audit_service: AuditService = None):
        self.options = options
        self.audit_service = audit_service

    def get_options(self, kind: str) -> List[str]:
        return self.options.get_options(to_option_kind(kind))

    def add_option(self, session: SessionContext, kind: str, value: str) -> List[str]:
        session.ensure_can_edit()
        option_kind = to_option_kind(kind)
        values = self.options.add_option_if_absent(option_kind, value)
        if self.audit_service:
            self.audit_service.log_option_change(session.username, option_kind.value, 'add', {'value': value})
        return values

    def rename_option(self, session: SessionContext, kind: str, old_value: str, new_value: str) -> List[str]:
        """
        Renombra un valor y lo propaga a los productos que lo usan.

        Returns:
            Lista resultante
        """
        session.ensure_can_edit()
        option_kind = to_option_kind(kind)
        values = self.options.rename_option(option_kind, old_value, new_value)
        if self.audit_service:
            self.audit_service.log_option_change(
                session.username, option_kind.value, 'rename', {'old': old_value, 'new': new_value}
            )
        return values

    def delete_option(self, session: SessionContext, kind: str, value: str) -> List[str]:
        session.ensure_can_edit()
        option_kind = to_option_kind(kind)
        values = self.options.delete_option(option_kind, value)
        if self.audit_service:
            self.audit_service.log_option_change(session.username, option_kind.value, 'delete', {'value': value})
        return values
