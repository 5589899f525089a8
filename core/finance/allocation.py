"""
Payment allocation across open invoices.

A payment settles `amount + discount_received`. With a target document the
settlement goes to that document only; without one it is spread oldest-first
over the party's open invoices. An allocation never exceeds a document's
balance due. Whatever cannot be applied is returned as unapplied and stays
on the party balance as credit.
"""

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from core.finance.money import ZERO, to_money
from core.finance.validation import CalculationInputError, coerce_decimal
from core.models.document import DocumentStatus, DocumentType
from core.models.payment import AllocationResult, OpenBalance, PaymentAllocation


def allocate_payment(
    settlement: Decimal,
    open_documents: Sequence[OpenBalance],
    document_id: UUID | None = None,
) -> AllocationResult:
    """
    Split a settlement over open documents.

    Args:
        settlement: Amount plus discount received
        open_documents: The party's open invoices
        document_id: Apply only to this document

    Returns:
        Allocations in application order and the unapplied remainder

    Raises:
        CalculationInputError: settlement is not a positive number
        ValueError: document_id is not among the open documents
    """
    errors: dict[str, str] = {}
    remaining = coerce_decimal(errors, "settlement", settlement, greater_than=ZERO)
    if errors:
        raise CalculationInputError(errors)
    remaining = to_money(remaining)

    if document_id is not None:
        targets = [d for d in open_documents if d.document_id == document_id]
        if not targets:
            raise ValueError(f"Open document {document_id} not found")
    else:
        targets = sorted(open_documents, key=lambda d: (d.issue_date, d.document_number))

    allocations = []
    for document in targets:
        if remaining <= ZERO:
            break
        if document.balance_due <= ZERO:
            continue
        applied = min(remaining, document.balance_due)
        allocations.append(PaymentAllocation(document_id=document.document_id, amount=applied))
        remaining -= applied

    return AllocationResult(allocations=allocations, unapplied=remaining)


def status_after_payment(
    document_type: DocumentType,
    amount_paid: Decimal,
    balance_due: Decimal,
) -> DocumentStatus:
    """
    Status of an issued document given what has been paid.

    Nothing paid keeps the type's issued status; a zero or negative balance
    is PAID (a negative balance is credit owed back).
    """
    if amount_paid <= ZERO:
        return document_type.issued_status
    if balance_due <= ZERO:
        return DocumentStatus.PAID
    return DocumentStatus.PARTIALLY_PAID
