import pytest

from stock_ledger import performance_logger
from stock_ledger.app_container import AppContainer
from stock_ledger.main import create_app
from stock_ledger.models import Role, SessionContext


@pytest.fixture(autouse=True)
def logs_dir(tmp_path, monkeypatch):
    """Los logs legibles de cada test van a su propio directorio temporal."""
    logs = tmp_path / 'logs'
    monkeypatch.setattr(performance_logger, 'LOGS_DIR', str(logs))
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', True)
    return logs


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / 'data')


@pytest.fixture
def container(data_dir):
    return AppContainer(data_dir)


@pytest.fixture
def editor():
    return SessionContext('ana', Role.EDITOR)


@pytest.fixture
def viewer():
    return SessionContext('luis', Role.VIEWER)


@pytest.fixture
def make_product(container):
    """Crea un producto directamente en el catálogo."""
    def _make(nomenclature='A1', name='Cable UTP', quantity=10, **extra):
        fields = {
            'nomenclature': nomenclature,
            'name': name,
            'category': 'Materiales',
            'quantity': quantity,
            'unit': 'pcs',
            'warehouse': 'Almacén Central',
            'rack': 'Estante N1',
            'minQuantity': 0,
            'isLowStockTracked': False,
            'dateAdded': '2024-01-10',
            'images': [],
        }
        fields.update(extra)
        return container.catalog_repo.create_product(fields)
    return _make


@pytest.fixture
def app(container, tmp_path):
    return create_app(
        {
            'TESTING': True,
            'SECRET_KEY': 'test-secret',
            'LOGS_DIR': str(tmp_path / 'logs'),
        },
        container=container,
    )


def _client_as(app, user, role):
    client = app.test_client()
    with client.session_transaction() as s:
        s['user'] = user
        s['role'] = role
    return client


@pytest.fixture
def client(app):
    return _client_as(app, 'ana', 'editor')


@pytest.fixture
def viewer_client(app):
    return _client_as(app, 'luis', 'viewer')


@pytest.fixture
def anonymous_client(app):
    return app.test_client()
