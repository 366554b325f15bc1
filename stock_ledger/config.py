# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================
# Valores por defecto + variables de entorno.
# Comando: export STOCK_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
# ==============================================================================

import os

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('STOCK_SECRET_KEY', 'stock_ledger_dev_secret_key_change_in_production')

    # Directorio de store.json y audit.json
    DATA_DIR = os.environ.get('STOCK_DATA_DIR') or os.path.join(basedir, 'data')

    # Directorio de los logs legibles (performance, errores)
    LOGS_DIR = os.environ.get('STOCK_LOGS_DIR') or os.path.join(basedir, 'logs')

    # Productos por lote en la importación (techo del almacén: 500)
    IMPORT_CHUNK_SIZE = int(os.environ.get('STOCK_IMPORT_CHUNK_SIZE', '450'))

    # Ejecuciones máximas de una transacción optimista con conflictos
    TX_MAX_ATTEMPTS = int(os.environ.get('STOCK_TX_MAX_ATTEMPTS', '5'))

    ENABLE_PROFILING = _env_bool('STOCK_ENABLE_PROFILING', True)

    # Cookies de sesión (acceso por IP local, sin HTTPS)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 86400

    # Hojas de cálculo e imágenes subidas
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024
