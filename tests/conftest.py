"""Shared fixtures: a small orders/customers schema."""

import pytest

from dbmd.database import DatabaseMetadata
from dbmd.models import (
    CaseSensitivity,
    Field,
    ForeignKey,
    ForeignKeyComponent,
    RelId,
    RelMetadata,
    RelType,
    SqlType,
)


def make_fk(child: RelId, parent: RelId, *pairs) -> ForeignKey:
    return ForeignKey(child, parent, tuple(ForeignKeyComponent(fk, pk) for fk, pk in pairs))


@pytest.fixture
def customers_id():
    return RelId(None, "SALES", "CUSTOMERS")


@pytest.fixture
def orders_id():
    return RelId(None, "SALES", "ORDERS")


@pytest.fixture
def customers(customers_id):
    return RelMetadata(
        rel_id=customers_id,
        rel_type=RelType.TABLE,
        comment="Customer master",
        fields=(
            Field("ID", int(SqlType.DECIMAL), "NUMBER", precision=10, fractional_digits=0, radix=10,
                  nullable=False, primary_key_part_num=1),
            Field("NAME", int(SqlType.VARCHAR), "VARCHAR2", length=100, nullable=True),
        ),
    )


@pytest.fixture
def orders(orders_id):
    return RelMetadata(
        rel_id=orders_id,
        rel_type=RelType.TABLE,
        fields=(
            Field("ID", int(SqlType.DECIMAL), "NUMBER", precision=10, fractional_digits=0, radix=10,
                  nullable=False, primary_key_part_num=1),
            Field("CUSTOMER_ID", int(SqlType.DECIMAL), "NUMBER", precision=10, fractional_digits=0,
                  radix=10, nullable=False),
            Field("BILL_TO_CUSTOMER_ID", int(SqlType.DECIMAL), "NUMBER", precision=10,
                  fractional_digits=0, radix=10, nullable=True),
        ),
    )


@pytest.fixture
def orders_to_customers(orders_id, customers_id):
    return make_fk(orders_id, customers_id, ("CUSTOMER_ID", "ID"))


@pytest.fixture
def sales_metadata(customers, orders, orders_to_customers):
    """Orders with a single foreign key to customers."""
    return DatabaseMetadata(
        requested_schema="SALES",
        relation_metadatas=[orders, customers],
        foreign_keys=[orders_to_customers],
        case_sensitivity=CaseSensitivity.INSENSITIVE_STORED_UPPER,
        dbms_name="Oracle",
        dbms_version="19.3.0.0.0",
        dbms_major_version=19,
        dbms_minor_version=3,
    )
