import json

import pytest

from stock_ledger.errors import (
    BatchLimitExceededError,
    ConcurrentModificationError,
    ValidationError,
)
from stock_ledger.repositories import CatalogRepository, DocumentStore


@pytest.fixture
def store(tmp_path):
    return DocumentStore(str(tmp_path / 'store.json'), max_attempts=3)


def test_new_store_file_has_every_collection(store):
    with open(store.file_path, encoding='utf-8') as f:
        data = json.load(f)
    assert set(data) == {'products', 'transactions', 'settings'}


def test_put_and_update_bump_version(store):
    store.put('products', 'p1', {'name': 'Tornillo'})
    assert store.get('products', 'p1')['version'] == 1

    assert store.update('products', 'p1', {'name': 'Tornillo M6'}) is True
    doc = store.get('products', 'p1')
    assert doc['version'] == 2
    assert doc['name'] == 'Tornillo M6'
    assert doc['id'] == 'p1'


def test_update_missing_document_returns_false(store):
    assert store.update('products', 'nope', {'name': 'x'}) is False
    assert store.delete('products', 'nope') is False


def test_query_matches_exact_value(store):
    store.put('products', 'a', {'warehouse': 'N6'})
    store.put('products', 'b', {'warehouse': 'N4'})
    assert [d['id'] for d in store.query('products', 'warehouse', 'N6')] == ['a']
    assert store.count('products') == 2


def test_transaction_writes_nothing_when_fn_raises(store):
    store.put('products', 'p1', {'quantity': 5})

    def failing(txn):
        txn.update('products', 'p1', {'quantity': 0})
        raise ValidationError("abortar")

    with pytest.raises(ValidationError):
        store.run_transaction(failing)
    assert store.get('products', 'p1')['quantity'] == 5


def test_transaction_retries_after_concurrent_write(store):
    store.put('products', 'p1', {'quantity': 5})
    seen = []

    def fn(txn):
        doc = txn.get('products', 'p1')
        seen.append(doc['quantity'])
        if len(seen) == 1:
            # Otro escritor cambia el documento entre la lectura y el commit
            store.update('products', 'p1', {'quantity': 7})
        txn.update('products', 'p1', {'quantity': doc['quantity'] + 1})
        return doc['quantity']

    assert store.run_transaction(fn) == 7
    assert seen == [5, 7]
    assert store.get('products', 'p1')['quantity'] == 8


def test_transaction_gives_up_after_max_attempts(store):
    store.put('products', 'p1', {'quantity': 5})
    calls = []

    def always_conflicting(txn):
        calls.append(1)
        txn.get('products', 'p1')
        store.update('products', 'p1', {'touched': len(calls)})
        txn.update('products', 'p1', {'quantity': 0})

    with pytest.raises(ConcurrentModificationError) as exc:
        store.run_transaction(always_conflicting)
    assert exc.value.attempts == 3
    assert len(calls) == 3
    assert store.get('products', 'p1')['quantity'] == 5


def test_batch_over_store_ceiling_is_rejected(store):
    batch = store.batch()
    for i in range(DocumentStore.MAX_BATCH_OPERATIONS + 1):
        batch.create('products', {'name': f'p{i}'})
    with pytest.raises(BatchLimitExceededError):
        batch.commit()
    assert store.count('products') == 0


def test_batch_commits_all_or_nothing(store):
    batch = store.batch()
    for i in range(DocumentStore.MAX_BATCH_OPERATIONS):
        batch.create('products', {'name': f'p{i}'})
    batch.commit()
    assert store.count('products') == DocumentStore.MAX_BATCH_OPERATIONS


def test_catalog_batch_ceiling(store):
    catalog = CatalogRepository(store)
    too_many = [{'name': f'p{i}', 'nomenclature': str(i)} for i in range(CatalogRepository.MAX_BATCH_SIZE + 1)]
    with pytest.raises(BatchLimitExceededError):
        catalog.batch_create_products(too_many)

    ids = catalog.batch_create_products(too_many[:CatalogRepository.MAX_BATCH_SIZE])
    assert len(set(ids)) == CatalogRepository.MAX_BATCH_SIZE
    assert catalog.count_products() == CatalogRepository.MAX_BATCH_SIZE


def test_transactions_only_allow_debt_fields_to_change(store):
    catalog = CatalogRepository(store)
    tx_id = catalog.append_transaction({'productId': 'p1', 'type': 'outbound', 'quantity': 2, 'isDebt': True})

    with pytest.raises(ValidationError):
        catalog.update_transaction(tx_id, {'quantity': 1})

    assert catalog.update_transaction(tx_id, {'isDebt': False, 'resolutionDate': '2024-05-01'}) is True
    tx = catalog.get_transaction(tx_id)
    assert tx.quantity == 2
    assert tx.resolution_date == '2024-05-01'


def test_corrupt_file_is_not_reset(store):
    with open(store.file_path, 'w', encoding='utf-8') as f:
        f.write('{"products": ')
    with pytest.raises(ValueError):
        store.list('products')
    with open(store.file_path, encoding='utf-8') as f:
        assert f.read() == '{"products": '
