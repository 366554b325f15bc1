# ==============================================================================
# LECTOR DE HOJAS DE CÁLCULO
# ==============================================================================
# Convierte un .xlsx de una sola hoja en candidatos de importación.
#
# La primera fila es el encabezado y se ignora. Columnas fijas:
#   0 código | 1 nombre | 2 cantidad | 3 unidad | 4 categoría | 5 almacén
# ==============================================================================

import math
from typing import Any, BinaryIO, List, Sequence

import openpyxl

from stock_ledger.errors import ImportFormatError
from stock_ledger.models import ScannedItem, Unit

COL_NOMENCLATURE = 0
COL_NAME = 1
COL_QUANTITY = 2
COL_UNIT = 3
COL_CATEGORY = 4
COL_WAREHOUSE = 5


def normalize_unit(raw: Any) -> str:
    """kg / m / l por coincidencia parcial; cualquier otro valor es pcs."""
    text = str(raw or '').strip().lower()
    if 'kg' in text:
        return Unit.KG.value
    if 'm' in text:
        return Unit.M.value
    if 'l' in text:
        return Unit.L.value
    return Unit.PCS.value


def _cell_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _cell_number(value: Any) -> float:
    """Cantidad de una celda; vacía, ilegible o negativa cuenta como 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value.replace(',', '.')) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _value_at(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def row_to_item(row: Sequence[Any]) -> ScannedItem:
    return ScannedItem(
        nomenclature=_cell_text(_value_at(row, COL_NOMENCLATURE)),
        name=_cell_text(_value_at(row, COL_NAME)),
        quantity=_cell_number(_value_at(row, COL_QUANTITY)),
        unit=normalize_unit(_value_at(row, COL_UNIT)),
        category=_cell_text(_value_at(row, COL_CATEGORY)),
        warehouse=_cell_text(_value_at(row, COL_WAREHOUSE)),
    )


class SpreadsheetParser:
    """Lector de .xlsx basado en openpyxl."""

    def parse(self, stream: BinaryIO) -> List[ScannedItem]:
        """
        Lee la hoja y devuelve los candidatos.

        Args:
            stream: Archivo .xlsx abierto en modo binario

        Returns:
            Candidatos (todos seleccionados)

        Raises:
            ImportFormatError: Archivo ilegible, más de una hoja, sin filas
                de datos o sin ninguna fila con nombre o código
        """
        try:
            wb = openpyxl.load_workbook(stream, read_only=True, data_only=True)
        except Exception as e:
            raise ImportFormatError(f"No se pudo leer el archivo; verifique que no esté dañado ({e})") from e

        try:
            if len(wb.sheetnames) > 1:
                raise ImportFormatError(
                    "El archivo tiene más de una hoja. Deje una sola tabla en una sola hoja e intente de nuevo."
                )
            # En modo read_only el XML de la hoja se lee recién al iterar
            try:
                rows = [tuple(row) for row in wb.worksheets[0].iter_rows(values_only=True)]
            except Exception as e:
                raise ImportFormatError(f"No se pudo leer la hoja; verifique que no esté dañada ({e})") from e
        finally:
            wb.close()

        if len(rows) < 2:
            raise ImportFormatError("El archivo está vacío o no tiene el formato esperado")

        items = [row_to_item(row) for row in rows[1:]]
        items = [item for item in items if item.name or item.nomenclature]
        if not items:
            raise ImportFormatError("El archivo no contiene filas con nombre o código")
        return items
