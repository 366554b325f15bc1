# ==============================================================================
# SISTEMA DE PROFILING Y LOG DE ERRORES
# ==============================================================================
# Mide rendimiento de rutas y de las operaciones del libro de inventario
# sin afectar al usuario. Guarda logs legibles en logs/ para análisis humano.
#
# ACTIVAR/DESACTIVAR: variable ENABLE_PROFILING (o STOCK_ENABLE_PROFILING
# en la configuración de la app)
#
# DIRECTORIO DE LOGS: las rutas y el manejador de errores de cada app Flask
# escriben en su propio app.config['LOGS_DIR']. El decorador profile_function
# y log_error llamados desde servicios corren fuera de una petición y usan
# LOGS_DIR del módulo, que es único por proceso (ver configure()).
# ==============================================================================

import os
import threading
import time
import traceback
from collections import defaultdict
from datetime import datetime
from functools import wraps

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = True

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

# Directorio de logs por defecto del proceso (se lee en cada escritura)
LOGS_DIR = os.path.join(os.getcwd(), 'logs')

PERFORMANCE_LOG = 'performance.log'
SLOW_FUNCTIONS_LOG = 'slow_functions.log'
ERRORS_LOG = 'ledger_errors.log'

# Nombres legibles de las rutas de la API
ROUTE_NAMES = {
    'POST /api/movements/<movement_type>': 'Registrar movimiento',
    'POST /api/transactions/<transaction_id>/resolve': 'Cerrar deuda',
    'POST /api/import': 'Importar productos',
    'POST /api/import/clusters': 'Agrupar duplicados',
    'POST /api/import/edit': 'Editar candidato',
    'POST /api/import/spreadsheet': 'Leer hoja de cálculo',
    'POST /api/import/scan': 'Escanear imagen',
    'GET /api/products': 'Ver inventario',
    'POST /api/products': 'Crear producto',
    'GET /api/products/<product_id>': 'Obtener producto',
    'PATCH /api/products/<product_id>': 'Editar producto',
    'GET /api/transactions': 'Ver historial',
    'GET /api/debts': 'Ver deudas pendientes',
    'GET /api/reports/summary': 'Ver panel principal',
    'POST /api/reports/<report>': 'Generar reporte',
    'POST /api/reports/<report>/export': 'Exportar reporte',
    'GET /api/options/<kind>': 'Ver opciones',
    'POST /api/options/<kind>': 'Agregar opción',
    'PUT /api/options/<kind>': 'Renombrar opción',
    'DELETE /api/options/<kind>': 'Eliminar opción',
    'GET /api/export': 'Exportar libro completo',
    'POST /api/export/backup': 'Guardar respaldo',
    'GET /api/audit': 'Ver registro de actividad',
}


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA DE LOGS
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def configure(logs_dir=None, enabled=None):
    """
    Cambia los valores por defecto del proceso.

    Args:
        logs_dir: Directorio para los logs escritos fuera de una petición
        enabled: Activa o desactiva profile_function
    """
    global LOGS_DIR, ENABLE_PROFILING
    if logs_dir is not None:
        LOGS_DIR = logs_dir
    if enabled is not None:
        ENABLE_PROFILING = enabled


def _write_log(filename, content, logs_dir=None):
    """Agrega un bloque al final del log. Los errores de disco se ignoran."""
    directory = logs_dir or LOGS_DIR
    try:
        with _write_lock:
            os.makedirs(directory, exist_ok=True)
            with open(os.path.join(directory, filename), 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        pass


def _get_route_name(method, rule):
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS (hooks de Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None, logs_dir=None):
    """
    Registra el rendimiento de una petición en performance.log

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada (/api/movements/outbound)
        rule: Regla de Flask (/api/movements/<movement_type>)
        time_ms: Tiempo en milisegundos
        user: Usuario de la sesión (opcional)
        logs_dir: Directorio de la app (LOGS_DIR del módulo si no se indica)
    """
    level = ''
    if time_ms >= THRESHOLD_CRITICAL:
        level = ' 🔴 MUY LENTA'
    elif time_ms >= THRESHOLD_WARNING:
        level = ' ⚠️ LENTA'

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}{level}
────────────────────────────────────────
Acción: {_get_route_name(method, rule)}
Usuario: {user or 'anónimo'}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry, logs_dir)


def init_profiling(app):
    """
    Registra hooks before_request / after_request en una app Flask.
    No hace nada si app.config['ENABLE_PROFILING'] es False.

    Uso:
        init_profiling(app)
    """
    if not app.config.get('ENABLE_PROFILING', ENABLE_PROFILING):
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        log_route_performance(
            request.method, request.path, rule, elapsed, session.get('user'), app.config.get('LOGS_DIR')
        )
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de operaciones críticas.

    Uso:
        @profile_function
        def apply_movement(...):
            ...

        @profile_function(name="Importar productos")
        def run_import(...):
            ...

    Registra llamadas, tiempo promedio y tiempo máximo. Las llamadas que
    superan THRESHOLD_WARNING se escriben en slow_functions.log.
    """
    def decorator(fn):
        func_name = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    emoji = '🔴' if time_ms >= THRESHOLD_CRITICAL else '⚠️'

    log_entry = f"""
{emoji} [{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ LOG DE ERRORES DEL LIBRO
# ═══════════════════════════════════════════════════════════════════════════

def log_error(operation, error, user=None, details=None, logs_dir=None):
    """
    Registra en ledger_errors.log un fallo de una operación
    (importación parcial, reintentos agotados, error inesperado).

    Args:
        operation: Nombre legible de la operación
        error: Excepción capturada
        user: Usuario de la sesión
        details: Datos adicionales (dict)
        logs_dir: Directorio de la app (LOGS_DIR del módulo si no se indica)
    """
    lines = [
        '',
        '════════════════════════════════════════',
        f"[ERROR] {_get_timestamp()}",
        '────────────────────────────────────────',
        f"Operación: {operation}",
        f"Usuario: {user or 'sistema'}",
        f"Error: {type(error).__name__}: {error}",
    ]
    for key, value in (details or {}).items():
        lines.append(f"{key}: {value}")
    if error.__traceback__ is not None:
        lines.append('Traza:')
        lines.append(''.join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip())
    _write_log(ERRORS_LOG, '\n'.join(lines) + '\n', logs_dir)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Vacía las estadísticas acumuladas en memoria."""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'configure',
    'init_profiling',
    'profile_function',
    'log_error',
    'get_function_stats',
    'reset_stats',
]
