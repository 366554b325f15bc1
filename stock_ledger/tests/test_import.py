import pytest

from stock_ledger.app_container import AppContainer
from stock_ledger.errors import PermissionDeniedError, ValidationError
from stock_ledger.models import DEFAULT_CATEGORY, ImportContext, ScannedItem
from stock_ledger.services import ImportService


@pytest.fixture
def context():
    return ImportContext(category='', warehouse='Almacén N6', rack='Estante N3', min_quantity=2, date_added='2024-06-01')


def spy_batches(container, monkeypatch):
    """Registra el tamaño de cada lote confirmado."""
    sizes = []
    original = container.catalog_repo.batch_create_products

    def counting(items):
        sizes.append(len(items))
        return original(items)

    monkeypatch.setattr(container.catalog_repo, 'batch_create_products', counting)
    return sizes


def test_large_import_is_split_into_chunks(container, editor, context, monkeypatch):
    sizes = spy_batches(container, monkeypatch)
    candidates = [ScannedItem(nomenclature=f'N{i:04d}', name=f'Artículo {i}', quantity=1) for i in range(500)]

    summary = container.import_service.run_import(editor, candidates, context)

    assert summary.inserted == 500
    assert summary.skipped_duplicate == 0
    assert summary.failed_at_chunk is None
    assert sizes == [450, 50]
    assert container.catalog_repo.count_products() == 500


def test_existing_nomenclature_is_skipped(container, editor, context, make_product):
    make_product(nomenclature='1001', name='Bomba centrífuga')
    candidates = [
        ScannedItem(nomenclature='1001', name='Bomba centrífuga 2HP', quantity=4),
        ScannedItem(nomenclature='1002', name='Válvula esférica', quantity=6),
    ]

    summary = container.import_service.run_import(editor, candidates, context)

    assert summary.inserted == 1
    assert summary.skipped_duplicate == 1
    codes = sorted(p.nomenclature for p in container.catalog_repo.list_products())
    assert codes == ['1001', '1002']
    # El producto existente no se modifica
    existing = container.catalog_repo.find_products_by('nomenclature', '1001')[0]
    assert existing.quantity == 10


def test_existing_name_is_skipped_case_insensitive(container, editor, context, make_product):
    make_product(nomenclature='Z9', name='Manguera 1/2')
    summary = container.import_service.run_import(
        editor, [ScannedItem(nomenclature='NEW', name='  MANGUERA 1/2 ', quantity=1)], context
    )
    assert summary.inserted == 0
    assert summary.skipped_duplicate == 1


def test_import_is_idempotent(container, editor, context):
    candidates = [ScannedItem(nomenclature='X1', name='Casco', quantity=3), ScannedItem(name='Chaleco', quantity=2)]

    first = container.import_service.run_import(editor, candidates, context)
    second = container.import_service.run_import(editor, candidates, context)

    assert first.inserted == 2
    assert second.inserted == 0
    assert second.skipped_duplicate == 2
    assert container.catalog_repo.count_products() == 2


def test_empty_keys_never_match(container, editor, context, make_product):
    make_product(nomenclature='', name='Sin código')
    summary = container.import_service.run_import(
        editor, [ScannedItem(nomenclature='', name='Otro sin código', quantity=1)], context
    )
    assert summary.inserted == 1


def test_candidates_are_completed_from_context(container, editor, context):
    container.import_service.run_import(
        editor, [ScannedItem(nomenclature='K1', name='Pintura', unit='', quantity=5)], context
    )
    product = container.catalog_repo.find_products_by('nomenclature', 'K1')[0]
    assert product.category == DEFAULT_CATEGORY
    assert product.unit == 'pcs'
    assert product.warehouse == 'Almacén N6'
    assert product.rack == 'Estante N3'
    assert product.min_quantity == 2
    assert product.date_added == '2024-06-01'
    assert product.is_low_stock_tracked is False
    assert product.images == []


def test_candidate_values_win_over_context(container, editor, context):
    container.import_service.run_import(
        editor,
        [ScannedItem(nomenclature='K2', name='Cable', category='Electrónica', warehouse='Perímetro Exterior', unit='m')],
        ImportContext(category='Materiales', warehouse='Almacén Central'),
    )
    product = container.catalog_repo.find_products_by('nomenclature', 'K2')[0]
    assert product.category == 'Electrónica'
    assert product.warehouse == 'Perímetro Exterior'
    assert product.unit == 'm'


def test_new_option_values_are_provisioned(container, editor, context):
    container.import_service.run_import(
        editor,
        [
            ScannedItem(nomenclature='Q1', name='Resina', category='Químicos', unit='gal', warehouse='Galpón 2'),
            ScannedItem(nomenclature='Q2', name='Solvente', category='químicos', unit='pcs'),
        ],
        context,
    )
    options = container.options_repo
    assert options.get_options('categories').count('Químicos') == 1
    assert 'químicos' not in options.get_options('categories')
    assert 'gal' in options.get_options('units')
    assert 'Galpón 2' in options.get_options('warehouses')
    assert 'Almacén N6' in options.get_options('warehouses')


def test_in_batch_duplicates_are_both_inserted(container, editor, context):
    candidates = [ScannedItem(nomenclature='D1', name='Pala'), ScannedItem(nomenclature='D1', name='Pala ancha')]
    summary = container.import_service.run_import(editor, candidates, context)
    assert summary.inserted == 2


def test_empty_candidate_list_is_rejected(container, editor, context):
    with pytest.raises(ValidationError):
        container.import_service.run_import(editor, [], context)


def test_invalid_candidate_is_rejected_before_any_write(container, editor, context):
    candidates = [ScannedItem(nomenclature='OK', name='Bueno'), ScannedItem(nomenclature='', name='  ')]
    with pytest.raises(ValidationError):
        container.import_service.run_import(editor, candidates, context)
    assert container.catalog_repo.count_products() == 0


def test_negative_quantity_is_rejected(container, editor, context):
    with pytest.raises(ValidationError):
        container.import_service.run_import(editor, [ScannedItem(name='Malo', quantity=-3)], context)


def test_viewer_cannot_import(container, viewer, context):
    with pytest.raises(PermissionDeniedError):
        container.import_service.run_import(viewer, [ScannedItem(name='Algo')], context)


def test_select_for_commit():
    items = [ScannedItem(name='a', selected=False), ScannedItem(name='b'), ScannedItem(name='c', selected=False)]
    assert [i.name for i in ImportService.select_for_commit(items)] == ['b']

    with pytest.raises(ValidationError):
        ImportService.select_for_commit([ScannedItem(name='a', selected=False)])


def test_failed_chunk_stops_import(container, editor, context, monkeypatch):
    original = container.catalog_repo.batch_create_products
    calls = []

    def flaky(items):
        calls.append(len(items))
        if len(calls) == 2:
            raise OSError("disco lleno")
        return original(items)

    monkeypatch.setattr(container.catalog_repo, 'batch_create_products', flaky)
    candidates = [ScannedItem(nomenclature=f'F{i}', name=f'Filtro {i}') for i in range(1000)]

    summary = container.import_service.run_import(editor, candidates, context)

    assert summary.inserted == 450
    assert summary.failed_at_chunk == 2
    assert summary.is_partial
    assert 'disco lleno' in summary.error
    assert calls == [450, 450]
    assert container.catalog_repo.count_products() == 450
    assert summary.to_dict()['failedAtChunk'] == 2


def test_chunk_size_bounds(container):
    with pytest.raises(ValueError):
        ImportService(container.catalog_repo, container.options_repo, chunk_size=0)
    with pytest.raises(ValueError):
        ImportService(container.catalog_repo, container.options_repo, chunk_size=501)


def test_custom_chunk_size(tmp_path, editor, context):
    container = AppContainer(str(tmp_path / 'small'), chunk_size=2)
    summary = container.import_service.run_import(
        editor, [ScannedItem(nomenclature=str(i), name=f'n{i}') for i in range(5)], context
    )
    assert summary.inserted == 5


def test_import_is_audited(container, editor, context, make_product):
    make_product(nomenclature='1001')
    container.import_service.run_import(
        editor, [ScannedItem(nomenclature='1001', name='x'), ScannedItem(nomenclature='1002', name='y')], context
    )
    log = container.audit_service.get_logs_by_type('IMPORTACION')[0]
    assert log['details'] == {'inserted': 1, 'skippedDuplicate': 1}
    assert log['user'] == 'ana'
