"""
Shared test fixtures.

No test talks to a real service: the in-memory stores, AsyncMock and
httpx.MockTransport stand in for every external collaborator.
"""

import asyncio
from datetime import date
from decimal import Decimal
from itertools import count

import pytest

from transaction_import.config import ImportSettings
from transaction_import.context import PipelineContext
from transaction_import.models.transaction import RemotePendingTransaction
from transaction_import.reconciliation import ImportSession
from transaction_import.services.storage import (
    InMemoryAuditStorage,
    InMemoryPendingStore,
    InMemoryTransactionStore,
)
from transaction_import.audit import AuditLogger


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


def make_remote(
    pending_id: int,
    description: str = "Coffee Shop",
    amount: str = "-4.50",
    account: str = "chase_brian",
    day: date = date(2024, 2, 25),
) -> RemotePendingTransaction:
    return RemotePendingTransaction(
        pending_transaction_id=pending_id,
        account_name_owner=account,
        transaction_date=day,
        description=description,
        amount=Decimal(amount),
    )


@pytest.fixture
def context():
    return PipelineContext.authenticated()


@pytest.fixture
def import_settings():
    return ImportSettings()


@pytest.fixture
def pending_store():
    return InMemoryPendingStore([
        make_remote(1, "Coffee Shop", "-4.50"),
        make_remote(2, "Shell Gas Station", "-40.00"),
        make_remote(3, "Netflix Subscription", "-15.99", account="amex_kari"),
    ])


@pytest.fixture
def transaction_store():
    return InMemoryTransactionStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def guid_factory():
    counter = count(1)
    return lambda: f"guid-{next(counter)}"


@pytest.fixture
def make_session(
    context,
    pending_store,
    transaction_store,
    audit_storage,
    import_settings,
    guid_factory,
):
    """Build a session over the in-memory stores; overrides via kwargs."""
    def factory(**overrides):
        kwargs = dict(
            context=context,
            pending_store=pending_store,
            transaction_store=transaction_store,
            audit_logger=AuditLogger(audit_storage),
            settings=import_settings,
            guid_factory=guid_factory,
        )
        kwargs.update(overrides)
        return ImportSession(**kwargs)
    return factory
