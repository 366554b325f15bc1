# ==============================================================================
# PUNTO DE ENTRADA WSGI
# ==============================================================================
# Cualquier servidor WSGI puede servir `wsgi:app`, por ejemplo:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# La configuración sale de variables de entorno (stock_ledger/config.py):
#   STOCK_SECRET_KEY, STOCK_DATA_DIR, STOCK_LOGS_DIR,
#   STOCK_IMPORT_CHUNK_SIZE, STOCK_TX_MAX_ATTEMPTS, STOCK_ENABLE_PROFILING
# ==============================================================================

from stock_ledger.main import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host='127.0.0.1', port=5000)
