import io

import openpyxl
import pytest

from stock_ledger.app_container import AppContainer
from stock_ledger.main import create_app
from stock_ledger.models import ScannedItem


def create(client, **fields):
    body = {'nomenclature': 'A1', 'name': 'Cable UTP', 'quantity': 10}
    body.update(fields)
    response = client.post('/api/products', json=body)
    assert response.status_code == 201
    return response.get_json()['product']


def test_requires_login(anonymous_client):
    response = anonymous_client.get('/api/products')
    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_viewer_can_read_but_not_write(client, viewer_client):
    product = create(client)
    assert viewer_client.get('/api/products').status_code == 200

    response = viewer_client.post('/api/movements/outbound', json={'productId': product['id'], 'quantity': 1})
    assert response.status_code == 403


def test_movement_flow(client):
    product = create(client)

    response = client.post('/api/movements/outbound', json={'productId': product['id'], 'quantity': 15})
    assert response.status_code == 409
    assert response.get_json()['available'] == 10

    response = client.post('/api/movements/outbound', json={
        'productId': product['id'], 'quantity': 4, 'receiver': 'Obra Norte', 'date': '2024-04-02',
    })
    data = response.get_json()
    assert response.status_code == 200
    assert data['product']['quantity'] == 6
    assert data['transaction']['type'] == 'outbound'
    assert data['transaction']['createdBy'] == 'ana'
    assert data['transaction']['debtState'] == 'standard'

    transactions = client.get('/api/transactions').get_json()['transactions']
    assert len(transactions) == 1


def test_movement_validation_errors(client):
    product = create(client)
    assert client.post('/api/movements/inbound', json={'productId': product['id'], 'quantity': 0}).status_code == 400
    assert client.post('/api/movements/sideways', json={'productId': product['id'], 'quantity': 1}).status_code == 400
    assert client.post('/api/movements/inbound', json={'productId': 'nope', 'quantity': 1}).status_code == 404
    response = client.post('/api/movements/inbound', json={'productId': product['id'], 'quantity': 1, 'isDebt': True})
    assert response.status_code == 400


def test_debt_resolution(client):
    product = create(client)
    tx = client.post('/api/movements/outbound', json={
        'productId': product['id'], 'quantity': 2, 'isDebt': True,
    }).get_json()['transaction']
    assert tx['debtState'] == 'pending'
    assert len(client.get('/api/debts').get_json()['transactions']) == 1

    response = client.post(f"/api/transactions/{tx['id']}/resolve", json={'resolutionImage': 'remito.jpg'})
    assert response.status_code == 200
    assert response.get_json()['transaction']['debtState'] == 'resolved'

    assert client.post(f"/api/transactions/{tx['id']}/resolve", json={}).status_code == 409
    assert client.post('/api/transactions/missing/resolve', json={}).status_code == 404
    assert client.get('/api/debts').get_json()['transactions'] == []


def test_import_flow(client):
    create(client, nomenclature='1001', name='Bomba')
    response = client.post('/api/import', json={
        'items': [
            {'nomenclature': '1001', 'name': 'Bomba 2HP', 'quantity': 1},
            {'nomenclature': '1002', 'name': 'Válvula', 'quantity': 3},
            {'nomenclature': '1003', 'name': 'No marcado', 'selected': False},
        ],
        'context': {'warehouse': 'Almacén N6'},
    })
    data = response.get_json()
    assert response.status_code == 200
    assert data['success'] is True
    assert data['summary'] == {'inserted': 1, 'skippedDuplicate': 1}
    assert len(client.get('/api/products').get_json()['products']) == 2


def test_import_with_nothing_selected(client):
    response = client.post('/api/import', json={'items': [{'name': 'x', 'selected': False}]})
    assert response.status_code == 400


@pytest.mark.parametrize('path, body', [
    ('/api/import', {'items': [{'nomenclature': 'Z1', 'name': 'Zeta'}], 'context': {'category': ['x']}}),
    ('/api/import', {'items': [{'nomenclature': 'Z1', 'name': 'Zeta'}], 'context': 'Almacén N6'}),
    ('/api/import', {'items': ['abc']}),
    ('/api/import', {'items': [{'nomenclature': 'Z1', 'name': {'es': 'Zeta'}}]}),
    ('/api/import/clusters', {'items': [None]}),
    ('/api/import/edit', {'item': 'Z1', 'edit': {'field': 'name', 'value': 'x'}}),
    ('/api/reports/history', {'filters': ['receiver']}),
    ('/api/movements/outbound', {'productId': 'p1', 'quantity': 1, 'receiver': ['Taller']}),
])
def test_malformed_bodies_are_rejected(client, path, body):
    response = client.post(path, json=body)
    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert client.get('/api/products').get_json()['products'] == []


def test_duplicate_clusters_endpoint(client):
    response = client.post('/api/import/clusters', json={
        'items': [{'nomenclature': 'A'}, {'nomenclature': 'B'}, {'nomenclature': 'a'}],
    })
    clusters = response.get_json()['clusters']
    assert set(clusters) == {'0', '2'}
    assert clusters['0'] == clusters['2']


def test_candidate_edit_endpoint(client):
    response = client.post('/api/import/edit', json={
        'item': {'nomenclature': 'A', 'name': 'x', 'quantity': 1},
        'edit': {'field': 'quantity', 'value': 9},
    })
    assert response.get_json()['item']['quantity'] == 9


def test_spreadsheet_upload(client):
    wb = openpyxl.Workbook()
    wb.active.append(['Código', 'Nombre', 'Cantidad', 'Unidad'])
    wb.active.append(['Z1', 'Arena fina', 12, 'kg'])
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)

    response = client.post(
        '/api/import/spreadsheet',
        data={'file': (buffer, 'inventario.xlsx')},
        content_type='multipart/form-data',
    )
    items = response.get_json()['items']
    assert response.status_code == 200
    assert items == [{
        'nomenclature': 'Z1', 'name': 'Arena fina', 'category': '', 'warehouse': '',
        'unit': 'kg', 'quantity': 12, 'selected': True,
    }]


def test_spreadsheet_upload_rejects_other_formats(client):
    response = client.post(
        '/api/import/spreadsheet',
        data={'file': (io.BytesIO(b'a,b,c'), 'inventario.csv')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 400


def test_scan_without_recognizer(client):
    response = client.post(
        '/api/import/scan',
        data={'image': (io.BytesIO(b'jpeg'), 'foto.jpg')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 503


class FakeRecognizer:
    def __init__(self):
        self.images = []

    def scan(self, image):
        self.images.append(image)
        return [ScannedItem(nomenclature='OCR1', name='Leído', quantity=2)]


def test_scan_with_recognizer(tmp_path):
    recognizer = FakeRecognizer()
    container = AppContainer(str(tmp_path / 'scan'), recognition_service=recognizer)
    app = create_app({'TESTING': True, 'SECRET_KEY': 'x', 'LOGS_DIR': str(tmp_path / 'logs')}, container=container)
    client = app.test_client()
    with client.session_transaction() as s:
        s['user'] = 'ana'
        s['role'] = 'editor'

    response = client.post(
        '/api/import/scan',
        data={'image': (io.BytesIO(b'jpeg-bytes'), 'foto.jpg')},
        content_type='multipart/form-data',
    )
    assert response.get_json()['items'][0]['nomenclature'] == 'OCR1'
    assert recognizer.images == [b'jpeg-bytes']


def test_products_endpoints(client):
    product = create(client, isLowStockTracked=True, minQuantity=20)
    assert client.get(f"/api/products/{product['id']}").get_json()['product']['isLowStock'] is True
    assert len(client.get('/api/products?lowStock=1').get_json()['products']) == 1

    response = client.patch(f"/api/products/{product['id']}", json={'name': 'Cable UTP cat6'})
    assert response.get_json()['product']['name'] == 'Cable UTP cat6'
    assert client.patch(f"/api/products/{product['id']}", json={'quantity': 1}).status_code == 400
    assert client.get('/api/products/missing').status_code == 404


def test_products_search_and_paging(client):
    create(client, nomenclature='A1', name='Cable UTP')
    create(client, nomenclature='A2', name='Cable coaxial')
    create(client, nomenclature='B1', name='Bomba')

    found = client.get('/api/products', query_string={'q': 'cable'}).get_json()['products']
    assert {p['nomenclature'] for p in found} == {'A1', 'A2'}

    page = client.get('/api/products', query_string={'q': 'cable', 'page': 2, 'perPage': 1}).get_json()
    assert page['total'] == 2
    assert page['pages'] == 2
    assert page['page'] == 2
    assert len(page['products']) == 1

    assert client.get('/api/products', query_string={'page': 'x'}).status_code == 400
    assert client.get('/api/products', query_string={'page': 0}).status_code == 400


def test_export_endpoints(client, viewer_client):
    create(client)
    export = client.get('/api/export')
    assert export.mimetype == 'application/json'
    assert 'attachment' in export.headers['Content-Disposition']
    assert export.get_json()['products'][0]['name'] == 'Cable UTP'

    assert viewer_client.post('/api/export/backup').status_code == 403
    backup = client.post('/api/export/backup').get_json()['backup']
    assert backup['products'] == 1
    assert backup['filename'].startswith('backup_')


def test_reports_endpoints(client):
    product = create(client)
    client.post('/api/movements/outbound', json={'productId': product['id'], 'quantity': 1, 'receiver': 'Taller'})

    summary = client.get('/api/reports/summary').get_json()['summary']
    assert summary['transactions'] == 1

    response = client.post('/api/reports/history', json={'filters': [{'kind': 'receiver', 'value': 'tall'}]})
    assert len(response.get_json()['rows']) == 1
    assert client.post('/api/reports/history', json={'filters': [{'kind': 'nope'}]}).status_code == 400
    assert client.post('/api/reports/sales', json={}).status_code == 400

    export = client.post('/api/reports/inventory/export', json={'filters': []})
    assert export.mimetype == 'text/csv'
    assert 'Cable UTP' in export.get_data(as_text=True)


def test_options_endpoints(client):
    assert 'pcs' in client.get('/api/options/units').get_json()['options']
    assert 'caja' in client.post('/api/options/units', json={'value': 'caja'}).get_json()['options']

    renamed = client.put('/api/options/units', json={'old': 'caja', 'new': 'caja x12'}).get_json()['options']
    assert 'caja x12' in renamed

    remaining = client.delete('/api/options/units', query_string={'value': 'caja x12'}).get_json()['options']
    assert 'caja x12' not in remaining
    assert client.get('/api/options/colors').status_code == 400


def test_audit_endpoint(client):
    create(client)
    logs = client.get('/api/audit?type=PRODUCTO').get_json()['logs']
    assert len(logs) == 1
    assert client.get('/api/audit?limit=abc').status_code == 400


@pytest.mark.parametrize('path', ['/api/products', '/api/debts', '/api/reports/summary'])
def test_profiled_routes_write_performance_log(client, logs_dir, path):
    assert client.get(path).status_code == 200
    assert (logs_dir / 'performance.log').exists()
