# ==============================================================================
# STOCK LEDGER - Libro de inventario y conciliación masiva
# ==============================================================================
# Movimientos de stock atómicos, deudas de documentación e importación de
# productos desde hojas de cálculo u OCR con deduplicación contra el catálogo.
#
#   from stock_ledger.main import create_app
#   app = create_app()
# ==============================================================================

__version__ = '1.0.0'
