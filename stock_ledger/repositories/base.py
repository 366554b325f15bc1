# ==============================================================================
# ARCHIVOS JSON - Persistencia compartida por los repositorios
# ==============================================================================
# Cada repositorio es dueño de un único archivo JSON. Todas las lecturas y
# escrituras del proceso pasan por el mismo RLock, y cada escritura reemplaza
# el archivo completo (temporal único + fsync + os.replace).
# ==============================================================================

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class JsonFileRepository(ABC):
    """
    Repositorio respaldado por un archivo JSON.

    Un archivo ilegible nunca se reinicia: se lanza ValueError para no
    perder el libro de movimientos.
    """

    # Compartido por todas las instancias (store.json y audit.json)
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta del archivo; el directorio se crea si falta
        """
        self.file_path = file_path
        os.makedirs(os.path.dirname(os.path.abspath(file_path)), exist_ok=True)
        with self._file_lock:
            if not os.path.exists(file_path):
                self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Contenido inicial de un archivo nuevo."""

    def _read_raw(self) -> Any:
        """
        Returns:
            Contenido actual del archivo

        Raises:
            ValueError: Si el archivo no contiene JSON válido
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except json.JSONDecodeError as e:
                raise ValueError(f"Archivo de datos dañado: {self.file_path} ({e})") from e

    def _write_raw(self, data: Any) -> None:
        with self._file_lock:
            directory = os.path.dirname(os.path.abspath(self.file_path))
            fd, temp_path = tempfile.mkstemp(prefix='.tmp-', suffix='.json', dir=directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, self.file_path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class JsonListRepository(JsonFileRepository):
    """Archivo con una lista de registros, el más reciente primero."""

    def _empty_data(self) -> List[Dict[str, Any]]:
        return []

    def entries(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def prepend(self, entry: Dict[str, Any], limit: int) -> None:
        """
        Inserta un registro al inicio y descarta los que excedan limit.

        Args:
            entry: Registro nuevo
            limit: Cantidad máxima de registros conservados
        """
        with self._file_lock:
            data = self.entries()
            data.insert(0, entry)
            self._write_raw(data[:limit])
