# ==============================================================================
# APLICACIÓN WEB - API JSON del libro de inventario
# ==============================================================================
# Las rutas solo leen la petición, arman el SessionContext y llaman a los
# servicios del contenedor. Los errores del dominio se convierten en
# respuestas {"success": False, "error": ...} en un único manejador.
#
# La autenticación vive fuera de esta app: se espera que la sesión ya
# tenga 'user' y 'role'.
# ==============================================================================

import io
from datetime import date
from functools import wraps
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, Response, current_app, request, session
from werkzeug.exceptions import HTTPException

from stock_ledger import performance_logger
from stock_ledger.app_container import AppContainer
from stock_ledger.config import Config
from stock_ledger.errors import (
    BatchLimitExceededError,
    ConcurrentModificationError,
    ImportFormatError,
    InsufficientStockError,
    InvalidStateError,
    LedgerError,
    PermissionDeniedError,
    ProductNotFoundError,
    StoreConflictError,
    TransactionNotFoundError,
    ValidationError,
)
from stock_ledger.models import (
    ImportContext,
    MovementMetadata,
    ScannedItem,
    SessionContext,
    apply_edit,
    edit_from_dict,
    filters_from_list,
)
from stock_ledger.performance_logger import init_profiling, log_error
from stock_ledger.services import ImportService, compute_duplicate_clusters
from stock_ledger.services.inventory_service import PAGE_SIZE

api = Blueprint('api', __name__, url_prefix='/api')

# Código HTTP por tipo de error del dominio
STATUS_BY_ERROR = (
    (ValidationError, 400),
    (ImportFormatError, 400),
    (BatchLimitExceededError, 400),
    (PermissionDeniedError, 403),
    (ProductNotFoundError, 404),
    (TransactionNotFoundError, 404),
    (InsufficientStockError, 409),
    (InvalidStateError, 409),
    (ConcurrentModificationError, 409),
    (StoreConflictError, 409),
)


# ═══════════════════════════════════════════════════════════════════════════════
# UTILIDADES DE PETICIÓN
# ═══════════════════════════════════════════════════════════════════════════════

def get_container() -> AppContainer:
    return current_app.extensions['stock_ledger']


def current_session() -> SessionContext:
    return SessionContext.from_dict(session)


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("El cuerpo debe ser un objeto JSON")
    return data


def object_from_body(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{key} debe ser un objeto JSON")
    return value


def items_from_body(data: Dict[str, Any]) -> list:
    raw = data.get('items')
    if not isinstance(raw, list):
        raise ValidationError("items debe ser una lista")
    if not all(isinstance(item, dict) for item in raw):
        raise ValidationError("Cada elemento de items debe ser un objeto JSON")
    return [ScannedItem.from_dict(item) for item in raw]


def int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except ValueError:
        raise ValidationError(f"{name} debe ser un número entero")


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if "user" not in session:
            return {"success": False, "error": "Debes iniciar sesión."}, 401
        return f(*args, **kwargs)
    return wrapper


def error_status(error: LedgerError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 400


# ═══════════════════════════════════════════════════════════════════════════════
# MOVIMIENTOS Y DEUDAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/movements/<movement_type>", methods=["POST"])
@login_required
def api_apply_movement(movement_type):
    """Entrada o salida de stock - retorna el movimiento creado"""
    data = json_body()
    transaction = get_container().movement_service.apply_movement(
        current_session(),
        data.get("productId"),
        movement_type,
        data.get("quantity"),
        MovementMetadata.from_dict(data),
    )
    product = get_container().inventory_service.get_product(transaction.product_id)
    return {
        "success": True,
        "transaction": transaction.to_api_dict(),
        "product": product.to_api_dict(),
    }


@api.route("/transactions/<transaction_id>/resolve", methods=["POST"])
@login_required
def api_resolve_debt(transaction_id):
    data = json_body()
    transaction = get_container().debt_service.resolve_debt(
        current_session(),
        transaction_id,
        data.get("resolutionImage") or None,
    )
    return {"success": True, "transaction": transaction.to_api_dict()}


@api.route("/transactions")
@login_required
def api_transactions():
    transactions = get_container().catalog_repo.list_transactions()
    return {"success": True, "transactions": [t.to_api_dict() for t in transactions]}


@api.route("/debts")
@login_required
def api_pending_debts():
    debts = get_container().debt_service.pending_debts()
    return {"success": True, "transactions": [t.to_api_dict() for t in debts]}


# ═══════════════════════════════════════════════════════════════════════════════
# IMPORTACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/import", methods=["POST"])
@login_required
def api_run_import():
    """
    Importa los candidatos seleccionados.
    Cuerpo: {"items": [...], "context": {"category", "warehouse", "rack", "minQuantity", "dateAdded"}}
    """
    data = json_body()
    candidates = ImportService.select_for_commit(items_from_body(data))
    context = ImportContext.from_dict(object_from_body(data, "context"))
    summary = get_container().import_service.run_import(current_session(), candidates, context)
    return {"success": not summary.is_partial, "summary": summary.to_dict()}


@api.route("/import/clusters", methods=["POST"])
@login_required
def api_duplicate_clusters():
    clusters = compute_duplicate_clusters(items_from_body(json_body()))
    return {"success": True, "clusters": {str(index): color for index, color in clusters.items()}}


@api.route("/import/edit", methods=["POST"])
@login_required
def api_edit_candidate():
    """Aplica una edición de la pantalla de revisión: {"item": {...}, "edit": {"field", "value"}}"""
    data = json_body()
    item = ScannedItem.from_dict(object_from_body(data, "item"))
    edited = apply_edit(item, edit_from_dict(object_from_body(data, "edit")))
    return {"success": True, "item": edited.to_dict()}


@api.route("/import/spreadsheet", methods=["POST"])
@login_required
def api_parse_spreadsheet():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("No se recibió ningún archivo")
    if not upload.filename.lower().endswith(".xlsx"):
        raise ImportFormatError("Solo se aceptan archivos .xlsx")
    items = get_container().spreadsheet_parser.parse(io.BytesIO(upload.read()))
    return {"success": True, "items": [item.to_dict() for item in items]}


@api.route("/import/scan", methods=["POST"])
@login_required
def api_scan_image():
    recognizer = get_container().recognition_service
    if recognizer is None:
        return {"success": False, "error": "El reconocimiento de imágenes no está configurado"}, 503
    upload = request.files.get("image")
    if upload is None:
        raise ValidationError("No se recibió ninguna imagen")
    items = recognizer.scan(upload.read())
    return {"success": True, "items": [item.to_dict() for item in items]}


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/products")
@login_required
def api_products():
    """
    Listado de productos.
    Parámetros: q (búsqueda parcial), lowStock=1, page y perPage (paginación opcional)
    """
    service = get_container().inventory_service
    query = request.args.get("q", "")
    low_stock_only = request.args.get("lowStock") in ("1", "true")
    if "page" in request.args:
        result = service.list_page(
            query, int_arg("page", 1), int_arg("perPage", PAGE_SIZE), low_stock_only
        )
        result["products"] = [p.to_api_dict() for p in result["products"]]
        return {"success": True, **result}

    products = service.search(query, low_stock_only)
    return {"success": True, "products": [p.to_api_dict() for p in products]}


@api.route("/products", methods=["POST"])
@login_required
def api_create_product():
    product = get_container().inventory_service.create_product(current_session(), json_body())
    return {"success": True, "product": product.to_api_dict()}, 201


@api.route("/products/<product_id>")
@login_required
def api_get_product(product_id):
    product = get_container().inventory_service.get_product(product_id)
    return {"success": True, "product": product.to_api_dict()}


@api.route("/products/<product_id>", methods=["PATCH"])
@login_required
def api_update_product(product_id):
    product = get_container().inventory_service.update_product(current_session(), product_id, json_body())
    return {"success": True, "product": product.to_api_dict()}


# ═══════════════════════════════════════════════════════════════════════════════
# REPORTES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/reports/summary")
@login_required
def api_dashboard_summary():
    return {"success": True, "summary": get_container().report_service.dashboard_summary()}


@api.route("/reports/<report>", methods=["POST"])
@login_required
def api_report(report):
    filters = filters_from_list(json_body().get("filters") or [])
    rows = get_container().report_service.run_report(report, filters)
    return {"success": True, "report": report, "rows": [row.to_api_dict() for row in rows]}


@api.route("/reports/<report>/export", methods=["POST"])
@login_required
def api_report_export(report):
    service = get_container().report_service
    filters = filters_from_list(json_body().get("filters") or [])
    rows = service.run_report(report, filters)
    output = service.to_csv(report, rows)
    return Response(
        output,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment;filename={report}_report.csv"}
    )


# ═══════════════════════════════════════════════════════════════════════════════
# OPCIONES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/options/<kind>")
@login_required
def api_get_options(kind):
    return {"success": True, "options": get_container().option_service.get_options(kind)}


@api.route("/options/<kind>", methods=["POST"])
@login_required
def api_add_option(kind):
    values = get_container().option_service.add_option(current_session(), kind, json_body().get("value"))
    return {"success": True, "options": values}


@api.route("/options/<kind>", methods=["PUT"])
@login_required
def api_rename_option(kind):
    data = json_body()
    values = get_container().option_service.rename_option(
        current_session(), kind, data.get("old") or '', data.get("new")
    )
    return {"success": True, "options": values}


@api.route("/options/<kind>", methods=["DELETE"])
@login_required
def api_delete_option(kind):
    value = json_body().get("value") or request.args.get("value")
    if not value:
        raise ValidationError("Debe indicar el valor a eliminar")
    values = get_container().option_service.delete_option(current_session(), kind, value)
    return {"success": True, "options": values}


# ═══════════════════════════════════════════════════════════════════════════════
# EXPORTACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/export")
@login_required
def api_export():
    """Descarga el libro completo en JSON"""
    output = get_container().export_service.to_json()
    filename = f"inventario_{date.today().isoformat()}.json"
    return Response(
        output,
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment;filename={filename}"}
    )


@api.route("/export/backup", methods=["POST"])
@login_required
def api_save_backup():
    result = get_container().export_service.save_backup(current_session())
    return {"success": True, "backup": result}


# ═══════════════════════════════════════════════════════════════════════════════
# AUDITORÍA
# ═══════════════════════════════════════════════════════════════════════════════

@api.route("/audit")
@login_required
def api_audit():
    service = get_container().audit_service
    log_type = request.args.get("type")
    if log_type:
        logs = service.get_logs_by_type(log_type)
    else:
        logs = service.get_recent_logs(int_arg("limit", 100))
    return {"success": True, "logs": logs}


# ═══════════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════════

def handle_ledger_error(error: LedgerError):
    body = {"success": False, "error": str(error)}
    if isinstance(error, InsufficientStockError):
        body["available"] = error.available
    return body, error_status(error)


def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return error
    current_app.logger.exception("Error inesperado en %s %s", request.method, request.path)
    log_error(
        f"{request.method} {request.path}", error, session.get("user"),
        logs_dir=current_app.config.get("LOGS_DIR"),
    )
    return {"success": False, "error": "Error interno del servidor"}, 500


# ═══════════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    container: Optional[AppContainer] = None
) -> Flask:
    """
    Crea la app Flask.

    Args:
        config_overrides: Valores que reemplazan a Config (tests, despliegue)
        container: Contenedor ya armado (si no, se crea desde la configuración)

    Returns:
        App lista para servir
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Valores del proceso para los servicios; la última app creada los define
    performance_logger.configure(app.config['LOGS_DIR'], app.config['ENABLE_PROFILING'])

    if container is None:
        container = AppContainer(
            app.config['DATA_DIR'],
            chunk_size=app.config['IMPORT_CHUNK_SIZE'],
            max_attempts=app.config['TX_MAX_ATTEMPTS'],
        )
    app.extensions['stock_ledger'] = container

    app.register_blueprint(api)
    app.register_error_handler(LedgerError, handle_ledger_error)
    app.register_error_handler(Exception, handle_unexpected_error)
    init_profiling(app)

    return app
