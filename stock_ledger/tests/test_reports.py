import csv
import io

import pytest

from stock_ledger.errors import ValidationError
from stock_ledger.models import (
    CategoryFilter,
    DateRange,
    DebtOnlyFilter,
    InboundDateFilter,
    MovementMetadata,
    OutboundDateFilter,
    QuantityRangeFilter,
    ReceiverFilter,
    SupplierFilter,
    UnitFilter,
    WarehouseFilter,
    filters_from_list,
)
from stock_ledger.services.report_service import HISTORY_CSV_HEADERS, INVENTORY_CSV_HEADERS


@pytest.fixture
def ledger(container, editor, make_product):
    """Dos productos con entradas, salidas y una deuda."""
    cable = make_product(nomenclature='C1', name='Cable', quantity=20, category='Electrónica',
                         dateAdded='2024-01-05', isLowStockTracked=True, minQuantity=10)
    arena = make_product(nomenclature='A1', name='Arena', quantity=100, unit='kg', category='Materiales',
                         warehouse='Perímetro Exterior', dateAdded='2024-02-01')
    move = container.movement_service.apply_movement
    move(editor, cable.id, 'inbound', 5, MovementMetadata(date='2024-03-01', receiver='Proveedora Andina'))
    move(editor, cable.id, 'outbound', 18, MovementMetadata(date='2024-03-10', receiver='Obra Norte', is_debt=True))
    move(editor, arena.id, 'outbound', 30, MovementMetadata(date='2024-03-10', receiver='Taller'))
    return cable, arena


def names(rows):
    return sorted(getattr(r, 'name', None) or r.product_name for r in rows)


def test_summary(container, ledger):
    summary = container.report_service.dashboard_summary()
    assert summary['products'] == 2
    assert summary['lowStock'] == 1
    assert summary['pendingDebts'] == 1
    assert summary['transactions'] == 3
    assert len(summary['recentTransactions']) == 3


def test_low_stock_only_counts_tracked_products(container, ledger):
    cable, _ = ledger
    assert [p.id for p in container.report_service.low_stock_products()] == [cable.id]


def test_inventory_product_filters(container, ledger):
    report = container.report_service
    assert names(report.filter_inventory([CategoryFilter('Materiales')])) == ['Arena']
    assert names(report.filter_inventory([WarehouseFilter('Almacén Central')])) == ['Cable']
    assert names(report.filter_inventory([UnitFilter('kg')])) == ['Arena']
    assert names(report.filter_inventory([QuantityRangeFilter(minimum=10)])) == ['Arena']
    assert names(report.filter_inventory([QuantityRangeFilter(maximum=7)])) == ['Cable']
    assert names(report.filter_inventory([])) == ['Arena', 'Cable']


def test_inventory_filters_through_movements(container, ledger):
    report = container.report_service
    assert names(report.filter_inventory([SupplierFilter('andina')])) == ['Cable']
    assert names(report.filter_inventory([ReceiverFilter('taller')])) == ['Arena']
    assert names(report.filter_inventory([DebtOnlyFilter()])) == ['Cable']
    assert names(report.filter_inventory([OutboundDateFilter(DateRange('2024-03-10'))])) == ['Arena', 'Cable']


def test_inbound_date_matches_date_added_or_inbound(container, ledger):
    report = container.report_service
    assert names(report.filter_inventory([InboundDateFilter(DateRange('2024-02-01'))])) == ['Arena']
    assert names(report.filter_inventory([InboundDateFilter(DateRange('2024-03-01'))])) == ['Cable']
    assert names(report.filter_inventory([InboundDateFilter(DateRange('2024-01-01', '2024-12-31'))])) == [
        'Arena', 'Cable'
    ]


def test_filters_are_combined(container, ledger):
    rows = container.report_service.filter_inventory([CategoryFilter('Electrónica'), ReceiverFilter('taller')])
    assert rows == []


def test_history_filters(container, ledger):
    report = container.report_service
    assert len(report.filter_history([])) == 3
    debts = report.filter_history([DebtOnlyFilter()])
    assert [t.receiver for t in debts] == ['Obra Norte']
    assert len(report.filter_history([SupplierFilter('andina')])) == 1
    assert len(report.filter_history([CategoryFilter('Electrónica')])) == 2
    assert len(report.filter_history([UnitFilter('kg')])) == 1
    assert len(report.filter_history([QuantityRangeFilter(minimum=10, maximum=20)])) == 1
    assert len(report.filter_history([InboundDateFilter(DateRange('2024-03-01'))])) == 1


def test_history_keeps_movements_of_deleted_products(container, ledger):
    cable, _ = ledger
    container.store.delete('products', cable.id)
    rows = container.report_service.filter_history([CategoryFilter('Materiales')])
    assert len(rows) == 3


def test_unknown_report(container):
    with pytest.raises(ValidationError):
        container.report_service.run_report('sales', [])


def test_filters_from_json():
    filters = filters_from_list([
        {'kind': 'category', 'value': 'Otros'},
        {'kind': 'quantity', 'min': '2'},
        {'kind': 'debt'},
        {'kind': 'outboundDate', 'from': '2024-01-01', 'to': '2024-01-31'},
    ])
    assert filters == [
        CategoryFilter('Otros'),
        QuantityRangeFilter(minimum=2.0),
        DebtOnlyFilter(),
        OutboundDateFilter(DateRange('2024-01-01', '2024-01-31')),
    ]


@pytest.mark.parametrize('raw', [
    {'kind': 'color', 'value': 'rojo'},
    {'kind': 'category'},
    {'kind': 'inboundDate'},
])
def test_invalid_filters(raw):
    with pytest.raises(ValidationError):
        filters_from_list([raw])


def test_csv_export(container, ledger):
    service = container.report_service
    inventory = list(csv.reader(io.StringIO(service.to_csv('inventory', service.run_report('inventory', [])))))
    assert inventory[0] == INVENTORY_CSV_HEADERS
    assert len(inventory) == 3

    history_rows = service.run_report('history', [DebtOnlyFilter()])
    history = list(csv.reader(io.StringIO(service.to_csv('history', history_rows))))
    assert history[0] == HISTORY_CSV_HEADERS
    assert history[1][1] == 'Salida'
    assert history[1][7] == 'Deuda pendiente'
