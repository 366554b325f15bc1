import pytest

from stock_ledger import performance_logger
from stock_ledger.app_container import AppContainer
from stock_ledger.errors import ConcurrentModificationError
from stock_ledger.main import create_app
from stock_ledger.performance_logger import get_function_stats, log_error, profile_function, reset_stats
from stock_ledger.repositories.catalog_repository import CatalogTransaction


def test_profile_function_collects_stats():
    reset_stats()

    @profile_function(name="Operación de prueba")
    def work(x):
        return x * 2

    assert work(2) == 4
    assert work(3) == 6
    stats = get_function_stats()['Operación de prueba']
    assert stats['calls'] == 2
    assert stats['max_time'] >= 0


def test_profiling_disabled_skips_stats(monkeypatch):
    reset_stats()
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', False)

    @profile_function
    def work():
        return 'ok'

    assert work() == 'ok'
    assert get_function_stats() == {}


def test_slow_calls_are_logged(logs_dir, monkeypatch):
    monkeypatch.setattr(performance_logger, 'THRESHOLD_WARNING', 0)

    @profile_function(name="Lenta")
    def slow():
        return None

    slow()
    assert 'Función: Lenta' in (logs_dir / 'slow_functions.log').read_text(encoding='utf-8')


def test_log_error_writes_traceback(logs_dir):
    try:
        raise ConcurrentModificationError(5)
    except ConcurrentModificationError as e:
        log_error("Registrar movimiento", e, 'ana', {'product_id': 'p1'})

    content = (logs_dir / 'ledger_errors.log').read_text(encoding='utf-8')
    assert 'Operación: Registrar movimiento' in content
    assert 'Usuario: ana' in content
    assert 'product_id: p1' in content
    assert 'Traza:' in content


def test_exhausted_retries_are_logged(tmp_path, logs_dir, editor, monkeypatch):
    container = AppContainer(str(tmp_path / 'busy'), max_attempts=2)
    product = container.catalog_repo.create_product({'nomenclature': 'B1', 'name': 'Balde', 'quantity': 9})
    original_get = CatalogTransaction.get_product

    def always_stale(self, product_id):
        result = original_get(self, product_id)
        container.store.update('products', product_id, {'notes': 'otro escritor'})
        return result

    monkeypatch.setattr(CatalogTransaction, 'get_product', always_stale)

    with pytest.raises(ConcurrentModificationError) as exc:
        container.movement_service.apply_movement(editor, product.id, 'outbound', 1)
    assert exc.value.attempts == 2

    assert 'ConcurrentModificationError' in (logs_dir / 'ledger_errors.log').read_text(encoding='utf-8')
    assert container.catalog_repo.get_product(product.id).quantity == 9


def test_each_app_writes_route_logs_to_its_own_dir(tmp_path):
    first_logs = tmp_path / 'logs_a'
    second_logs = tmp_path / 'logs_b'
    first = create_app({'TESTING': True, 'SECRET_KEY': 'a', 'LOGS_DIR': str(first_logs)},
                       container=AppContainer(str(tmp_path / 'data_a')))
    create_app({'TESTING': True, 'SECRET_KEY': 'b', 'LOGS_DIR': str(second_logs)},
               container=AppContainer(str(tmp_path / 'data_b')))

    client = first.test_client()
    with client.session_transaction() as s:
        s['user'] = 'ana'
        s['role'] = 'editor'
    assert client.get('/api/products').status_code == 200

    assert 'Ver inventario' in (first_logs / 'performance.log').read_text(encoding='utf-8')
    assert not (second_logs / 'performance.log').exists()


def test_configure_sets_process_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(performance_logger, 'THRESHOLD_WARNING', 0)
    performance_logger.configure(str(tmp_path / 'service_logs'))

    @profile_function(name="Servicio")
    def work():
        return None

    work()
    assert 'Función: Servicio' in (tmp_path / 'service_logs' / 'slow_functions.log').read_text(encoding='utf-8')
