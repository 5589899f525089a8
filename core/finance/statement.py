"""
Party statement arithmetic.

A party's running balance only ever moves when a document is issued, edited
or cancelled, or a payment is recorded. Walking those movements backwards
from the current balance gives the balance at the start of any period:

    opening = current balance - movements dated on or after date_from
    closing = opening + movements dated within [date_from, date_to]
"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from core.finance.money import ZERO, to_money
from core.models.document import DocumentType
from core.models.party import Party
from core.models.report import PartyStatement, StatementEntry, StatementEntryType

# Documents before payments on the same day
_ENTRY_ORDER = {StatementEntryType.DOCUMENT: 0, StatementEntryType.PAYMENT: 1}


def _split(amount: Decimal) -> tuple[Decimal, Decimal]:
    amount = to_money(amount)
    if amount >= ZERO:
        return amount, to_money(ZERO)
    return to_money(ZERO), -amount


def document_entry(
    document_type: DocumentType, document_number: str, issue_date: date, total: Decimal
) -> StatementEntry:
    """An issued document, signed the way it moved the party balance."""
    debit, credit = _split(document_type.balance_sign * total)
    return StatementEntry(
        entry_date=issue_date,
        entry_type=StatementEntryType.DOCUMENT,
        reference=document_number,
        description=f"{document_type.value.replace('_', ' ').capitalize()} {document_number}",
        document_type=document_type,
        debit=debit,
        credit=credit,
    )


def payment_entry(
    payment_number: str,
    payment_date: date,
    amount: Decimal,
    discount_received: Decimal = ZERO,
    method: str | None = None,
) -> StatementEntry:
    """A payment credits the party with the cash received plus any discount given."""
    description = f"Payment {payment_number}"
    if method:
        description += f" ({method})"
    if discount_received:
        description += f", discount {to_money(discount_received)}"

    debit, credit = _split(-(amount + discount_received))
    return StatementEntry(
        entry_date=payment_date,
        entry_type=StatementEntryType.PAYMENT,
        reference=payment_number,
        description=description,
        debit=debit,
        credit=credit,
    )


def build_statement(
    party: Party,
    movements: Iterable[StatementEntry],
    date_from: date | None = None,
    date_to: date | None = None,
) -> PartyStatement:
    """
    Opening balance, dated entries with running balance, and closing balance.

    Args:
        party: The party, with its current running balance
        movements: Balance movements. Every movement dated on or after
            `date_from` must be present, including those after `date_to`;
            earlier ones are ignored.
        date_from: First day of the period, or None for all history
        date_to: Last day of the period, or None for up to today

    Raises:
        ValueError: date_to is before date_from
    """
    if date_from is not None and date_to is not None and date_to < date_from:
        raise ValueError("date_to must not be before date_from")

    later = sorted(
        (m for m in movements if date_from is None or m.entry_date >= date_from),
        key=lambda m: (m.entry_date, _ENTRY_ORDER[m.entry_type], m.reference),
    )

    moved = sum((m.debit - m.credit for m in later), ZERO)
    opening = to_money(party.balance - moved)

    running = opening
    total_debits = total_credits = to_money(ZERO)
    entries = []
    for movement in later:
        if date_to is not None and movement.entry_date > date_to:
            break
        running += movement.debit - movement.credit
        total_debits += movement.debit
        total_credits += movement.credit
        entries.append(movement.model_copy(update={"running_balance": running}))

    return PartyStatement(
        party_id=party.id,
        party_name=party.name,
        party_type=party.party_type,
        date_from=date_from,
        date_to=date_to,
        opening_balance=opening,
        entries=entries,
        total_debits=total_debits,
        total_credits=total_credits,
        closing_balance=running,
    )
