"""Tests for PaymentService: allocation, document updates and party balance."""

from datetime import date
from decimal import Decimal
from unittest.mock import Mock
from uuid import uuid4

import pytest

from core.models import Document, Party, PaymentCreate
from core.services.document_service import DocumentService
from core.services.party_service import PartyService


@pytest.fixture
def customer(party_row):
    return Party.model_validate(party_row(balance=Decimal("1500.00")))


@pytest.fixture
def parties(customer):
    parties = Mock(spec=PartyService)
    parties.get_by_id.return_value = customer
    parties.balance_statement.side_effect = lambda party_id, delta: ("BALANCE", (party_id, delta))
    return parties


@pytest.fixture
def documents():
    documents = Mock(spec=DocumentService)
    documents.list_open_for_party.return_value = []
    return documents


@pytest.fixture
def payment_service(postgres, audit, parties, documents):
    from core.services.payment_service import PaymentService
    return PaymentService(postgres, audit, parties, documents)


@pytest.fixture
def open_invoices(customer, document_row):
    """Two sent invoices: 1000 from January and 500 from February."""
    return [
        Document.model_validate(document_row(
            party_id=customer.id, status="sent", document_number="INV-20240201-001",
            issue_date=date(2024, 2, 1), total=Decimal("500.00"), balance_due=Decimal("500.00"),
        )),
        Document.model_validate(document_row(
            party_id=customer.id, status="sent", document_number="INV-20240110-001",
            issue_date=date(2024, 1, 10), total=Decimal("1000.00"), balance_due=Decimal("1000.00"),
        )),
    ]


def statements_of(postgres) -> list[tuple[str, tuple]]:
    return list(postgres.execute_in_transaction.call_args.args[0])


def document_updates(postgres) -> list[tuple]:
    """(amount_paid, balance_due, status, updated_at, id) per updated invoice."""
    return [params for query, params in statements_of(postgres) if "UPDATE documents" in query]


class TestRecord:

    def test_applies_oldest_first(
        self, payment_service, postgres, documents, customer, open_invoices, payment_row, as_test_org
    ):
        documents.list_open_for_party.return_value = open_invoices
        postgres.execute_single.return_value = None
        postgres.execute_in_transaction.return_value = [
            [payment_row(party_id=customer.id, amount=Decimal("1200.00"))], [], [{}], [], [{}], [{}],
        ]

        payment = payment_service.record(PaymentCreate(party_id=customer.id, amount=Decimal("1200")))

        january, february = open_invoices[1], open_invoices[0]
        updates = document_updates(postgres)
        assert [(u[0], u[1], u[2], u[4]) for u in updates] == [
            (Decimal("1000.00"), Decimal("0.00"), "paid", january.id),
            (Decimal("200.00"), Decimal("300.00"), "partially_paid", february.id),
        ]
        assert [a.document_id for a in payment.allocations] == [january.id, february.id]
        assert statements_of(postgres)[-1] == ("BALANCE", (customer.id, Decimal("-1200")))

    def test_excess_is_unapplied_credit(
        self, payment_service, postgres, documents, customer, open_invoices, payment_row, as_test_org, caplog
    ):
        documents.list_open_for_party.return_value = open_invoices
        postgres.execute_single.return_value = None
        postgres.execute_in_transaction.return_value = [[payment_row(party_id=customer.id)]] + [[{}]] * 5

        payment_service.record(PaymentCreate(party_id=customer.id, amount=Decimal("1600")))

        insert_params = statements_of(postgres)[0][1]
        assert Decimal("100.00") in insert_params
        assert "unapplied" in caplog.text

    def test_discount_received_counts_toward_settlement(
        self, payment_service, postgres, documents, customer, open_invoices, payment_row, as_test_org
    ):
        documents.list_open_for_party.return_value = open_invoices[1:]
        postgres.execute_single.return_value = None
        postgres.execute_in_transaction.return_value = [[payment_row(party_id=customer.id)], [], [{}], [{}]]

        payment_service.record(PaymentCreate(
            party_id=customer.id, amount=Decimal("980"), discount_received=Decimal("20"),
        ))

        assert document_updates(postgres)[0][2] == "paid"
        assert statements_of(postgres)[-1][1] == (customer.id, Decimal("-1000"))

    def test_targeted_document_only(
        self, payment_service, postgres, documents, customer, open_invoices, payment_row, as_test_org
    ):
        february = open_invoices[0]
        documents.get_by_id.return_value = february
        documents.list_open_for_party.return_value = open_invoices
        postgres.execute_single.return_value = None
        postgres.execute_in_transaction.return_value = [[payment_row(party_id=customer.id)], [], [{}], [{}]]

        payment_service.record(PaymentCreate(
            party_id=customer.id, document_id=february.id, amount=Decimal("300"),
        ))

        updates = document_updates(postgres)
        assert len(updates) == 1
        assert updates[0][4] == february.id

    def test_number_prefix_for_supplier(
        self, payment_service, postgres, parties, party_row, payment_row, as_test_org, monkeypatch
    ):
        import core.services.payment_service as module
        monkeypatch.setattr(module, "today_utc", lambda: date(2024, 1, 15))
        supplier = Party.model_validate(party_row(party_type="supplier"))
        parties.get_by_id.return_value = supplier
        postgres.execute_single.return_value = {"payment_number": "SPAY-20240115-002"}
        postgres.execute_in_transaction.return_value = [[payment_row(party_type="supplier")], [{}]]

        payment_service.record(PaymentCreate(party_id=supplier.id, amount=Decimal("50")))

        assert "SPAY-20240115-003" in statements_of(postgres)[0][1]
        assert postgres.execute_single.call_args.args[1] == ("SPAY-20240115-%",)

    def test_unknown_party(self, payment_service, parties):
        parties.get_by_id.return_value = None

        with pytest.raises(ValueError, match="not found"):
            payment_service.record(PaymentCreate(party_id=uuid4(), amount=Decimal("10")))

    def test_document_of_other_party(self, payment_service, documents, customer, document_row):
        documents.get_by_id.return_value = Document.model_validate(document_row(status="sent"))

        with pytest.raises(ValueError, match="does not belong"):
            payment_service.record(PaymentCreate(
                party_id=customer.id, document_id=uuid4(), amount=Decimal("10"),
            ))

    def test_draft_not_open_for_payment(self, payment_service, postgres, documents, customer, document_row):
        documents.get_by_id.return_value = Document.model_validate(document_row(party_id=customer.id))

        with pytest.raises(ValueError, match="not open for payment"):
            payment_service.record(PaymentCreate(
                party_id=customer.id, document_id=uuid4(), amount=Decimal("10"),
            ))

        postgres.execute_in_transaction.assert_not_called()


class TestRead:

    def test_get_by_id_attaches_allocations(self, payment_service, postgres, payment_row):
        row = payment_row()
        document_id = uuid4()
        postgres.execute_single.return_value = row
        postgres.execute.return_value = [
            {"payment_id": row["id"], "document_id": document_id, "amount": Decimal("500.00")},
        ]

        payment = payment_service.get_by_id(row["id"])

        assert payment.allocations[0].document_id == document_id
        assert postgres.execute.call_args.args[1] == ([row["id"]],)

    def test_get_missing(self, payment_service, postgres):
        postgres.execute_single.return_value = None
        assert payment_service.get_by_id(uuid4()) is None

    def test_list_for_party(self, payment_service, postgres, payment_row):
        first, second = payment_row(), payment_row(payment_number="PAY-20240115-002")
        postgres.execute.side_effect = [
            [first, second],
            [{"payment_id": second["id"], "document_id": uuid4(), "amount": Decimal("500.00")}],
        ]

        payments = payment_service.list_for_party(uuid4())

        assert payments[0].allocations == []
        assert len(payments[1].allocations) == 1

    def test_list_empty_skips_allocation_query(self, payment_service, postgres):
        postgres.execute.return_value = []

        assert payment_service.list_for_party(uuid4()) == []
        assert postgres.execute.call_count == 1
