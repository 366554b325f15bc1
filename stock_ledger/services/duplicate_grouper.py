# ==============================================================================
# AGRUPADOR DE DUPLICADOS
# ==============================================================================
# Marca con un mismo color los candidatos que comparten código dentro del
# lote en revisión. Es solo informativo: el importador no lo usa.
# ==============================================================================

from collections import OrderedDict
from typing import Dict, List, Sequence

from stock_ledger.models import ScannedItem, normalize_key

# Clases de fondo de la pantalla de revisión, en orden de asignación
DUPLICATE_COLORS = (
    'bg-red-100',
    'bg-orange-100',
    'bg-yellow-100',
    'bg-blue-100',
    'bg-purple-100',
    'bg-pink-100',
    'bg-indigo-100',
    'bg-teal-100',
)


def compute_duplicate_clusters(
    candidates: Sequence[ScannedItem],
    palette: Sequence[str] = DUPLICATE_COLORS
) -> Dict[int, str]:
    """
    Agrupa candidatos por código normalizado.

    Args:
        candidates: Candidatos en el orden en que se muestran
        palette: Colores a asignar (se reutilizan cíclicamente)

    Returns:
        {índice del candidato: color} solo para los grupos con más de un
        miembro. Los códigos vacíos nunca forman grupo.
    """
    groups: 'OrderedDict[str, List[int]]' = OrderedDict()
    for index, item in enumerate(candidates):
        key = normalize_key(item.nomenclature)
        if key:
            groups.setdefault(key, []).append(index)

    colors = {}
    cluster = 0
    for indices in groups.values():
        if len(indices) < 2:
            continue
        color = palette[cluster % len(palette)]
        for index in indices:
            colors[index] = color
        cluster += 1
    return colors
