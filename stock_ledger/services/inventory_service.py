# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Alta, consulta y edición de productos individuales.
# La cantidad solo la modifican los movimientos (MovementService) y la
# importación; la edición manual no la toca.
# ==============================================================================

from typing import Any, Dict, List

from stock_ledger.errors import ProductNotFoundError, ValidationError
from stock_ledger.models import (
    DEFAULT_CATEGORY,
    Product,
    SessionContext,
    Unit,
    normalize_key,
    parse_quantity,
    today_iso,
)
from stock_ledger.repositories.interfaces import ICatalogStore
from stock_ledger.services.audit_service import AuditService

# Campos de texto editables después del alta
TEXT_FIELDS = ('nomenclature', 'name', 'category', 'unit', 'warehouse', 'rack', 'dateAdded')

# Campos permitidos en update_product
EDITABLE_FIELDS = frozenset(TEXT_FIELDS + ('minQuantity', 'isLowStockTracked', 'images'))

# Campos donde busca search()
SEARCH_FIELDS = ('name', 'nomenclature', 'category', 'warehouse')

# Paginación del listado
PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


def _clean_images(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("images debe ser una lista")
    return [str(v) for v in value]


class InventoryService:
    """
    Servicio para gestión de productos.

    Responsabilidades:
    - Lectura del catálogo (siempre fresca)
    - Alta manual de productos
    - Edición de campos descriptivos (nunca la cantidad)
    """

    def __init__(self, catalog: ICatalogStore, audit_service: AuditService = None):
        """
        Args:
            catalog: Almacén de productos
            audit_service: Servicio de auditoría (opcional)
        """
        self.catalog = catalog
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_products(self) -> List[Product]:
        return self.catalog.list_products()

    def search(self, query: str, low_stock_only: bool = False) -> List[Product]:
        """
        Busca productos por texto parcial, sin distinguir mayúsculas.

        Args:
            query: Texto buscado en nombre, código, categoría o almacén
            low_stock_only: Solo productos con stock bajo

        Returns:
            Productos que coinciden (todos si query está vacío)
        """
        needle = normalize_key(query)
        products = self.catalog.list_products()
        if low_stock_only:
            products = [p for p in products if p.is_low_stock]
        if not needle:
            return products
        return [
            p for p in products
            if any(needle in normalize_key(getattr(p, name)) for name in SEARCH_FIELDS)
        ]

    def list_page(
        self,
        query: str = '',
        page: int = 1,
        per_page: int = PAGE_SIZE,
        low_stock_only: bool = False
    ) -> Dict[str, Any]:
        """
        Página del listado de productos, con búsqueda opcional.

        Returns:
            {"products", "page", "perPage", "total", "pages"}

        Raises:
            ValidationError: Si page < 1 o per_page está fuera de 1..MAX_PAGE_SIZE
        """
        if page < 1:
            raise ValidationError("page debe ser mayor o igual a 1")
        if not 1 <= per_page <= MAX_PAGE_SIZE:
            raise ValidationError(f"perPage debe estar entre 1 y {MAX_PAGE_SIZE}")

        products = self.search(query, low_stock_only)
        start = (page - 1) * per_page
        return {
            'products': products[start:start + per_page],
            'page': page,
            'perPage': per_page,
            'total': len(products),
            'pages': (len(products) + per_page - 1) // per_page,
        }

    def get_product(self, product_id: str) -> Product:
        """
        Raises:
            ProductNotFoundError: Si el producto no existe
        """
        product = self.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    # =========================================================================
    # ALTA Y EDICIÓN
    # =========================================================================

    def create_product(self, session: SessionContext, fields: Dict[str, Any]) -> Product:
        """
        Crea un producto desde el formulario.

        Args:
            session: Usuario que crea el producto
            fields: Campos en formato de documento (nomenclature, name, quantity, ...)

        Returns:
            Producto creado

        Raises:
            ValidationError: Si faltan código o nombre, o la cantidad es inválida
        """
        session.ensure_can_edit()
        nomenclature = str(fields.get('nomenclature') or '').strip()
        name = str(fields.get('name') or '').strip()
        if not nomenclature or not name:
            raise ValidationError("El código y el nombre son obligatorios")

        data = {
            'nomenclature': nomenclature,
            'name': name,
            'category': str(fields.get('category') or '').strip() or DEFAULT_CATEGORY,
            'quantity': parse_quantity(fields.get('quantity', 0), 'quantity'),
            'unit': str(fields.get('unit') or '').strip() or Unit.PCS.value,
            'warehouse': str(fields.get('warehouse') or '').strip(),
            'rack': str(fields.get('rack') or '').strip(),
            'minQuantity': parse_quantity(fields.get('minQuantity', 0) or 0, 'minQuantity'),
            'isLowStockTracked': bool(fields.get('isLowStockTracked', False)),
            'dateAdded': fields.get('dateAdded') or today_iso(),
            'images': _clean_images(fields.get('images')),
        }
        product = self.catalog.create_product(data)

        if self.audit_service:
            self.audit_service.log_product_created(session.username, product)

        return product

    def update_product(self, session: SessionContext, product_id: str, fields: Dict[str, Any]) -> Product:
        """
        Actualiza campos descriptivos de un producto.

        Raises:
            ValidationError: Si se envía 'quantity' u otro campo no editable
            ProductNotFoundError: Si el producto no existe
        """
        session.ensure_can_edit()
        if 'quantity' in fields:
            raise ValidationError("La cantidad solo cambia mediante entradas y salidas")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Campos no editables: {', '.join(sorted(unknown))}")

        updates: Dict[str, Any] = {}
        for key in TEXT_FIELDS:
            if key in fields:
                updates[key] = str(fields[key] or '').strip()
        for key in ('nomenclature', 'name'):
            if key in updates and not updates[key]:
                raise ValidationError(f"{key} no puede quedar vacío")
        if 'minQuantity' in fields:
            updates['minQuantity'] = parse_quantity(fields['minQuantity'] or 0, 'minQuantity')
        if 'isLowStockTracked' in fields:
            updates['isLowStockTracked'] = bool(fields['isLowStockTracked'])
        if 'images' in fields:
            updates['images'] = _clean_images(fields['images'])

        if not self.catalog.update_product(product_id, updates):
            raise ProductNotFoundError(product_id)

        product = self.get_product(product_id)
        if self.audit_service:
            self.audit_service.log_product_updated(session.username, product_id, product.name, updates)
        return product
