"""
Profit-by-item arithmetic.

    sale_price_after_discount = unit_price x (1 - discount_percent / 100)
    profit_per_unit           = sale_price_after_discount - fifo_cost_per_unit
    profit_percent            = profit_per_unit / sale_price_after_discount x 100

The FIFO cost per unit is supplied by the stock-lot allocator; it is not
computed here. Zero denominators yield 0%.
"""

from decimal import Decimal
from typing import Iterable

from core.finance.money import HUNDRED, ONE, ZERO, safe_percent, to_money
from core.finance.validation import CalculationInputError, coerce_decimal
from core.models.report import ItemProfit, ProfitGroup, ProfitItemInput, ProfitReport


def fifo_cost_per_unit(cost_of_goods_sold: Decimal | None, quantity: Decimal) -> Decimal:
    """Stored COGS spread over the quantity sold. 0 when nothing was sold or no cost is known."""
    if cost_of_goods_sold is None or quantity == ZERO:
        return ZERO
    return cost_of_goods_sold / quantity


def calculate_item_profit(item: ProfitItemInput) -> ItemProfit:
    """
    Profit figures for one sold line.

    Raises:
        CalculationInputError: A numeric field is negative, non-finite, or the
            discount is outside [0, 100].
    """
    errors: dict[str, str] = {}
    quantity = coerce_decimal(errors, "quantity", item.quantity, minimum=ZERO)
    unit_price = coerce_decimal(errors, "unit_price", item.unit_price, minimum=ZERO)
    discount = coerce_decimal(
        errors, "discount_percent", item.discount_percent, minimum=ZERO, maximum=HUNDRED
    )
    if item.fifo_cost_per_unit is not None:
        coerce_decimal(errors, "fifo_cost_per_unit", item.fifo_cost_per_unit, minimum=ZERO)
    if item.cost_of_goods_sold is not None:
        coerce_decimal(errors, "cost_of_goods_sold", item.cost_of_goods_sold, minimum=ZERO)
    if errors:
        raise CalculationInputError(errors)

    if item.fifo_cost_per_unit is not None:
        unit_cost = item.fifo_cost_per_unit
    else:
        unit_cost = fifo_cost_per_unit(item.cost_of_goods_sold, quantity)

    sale_price = unit_price * (ONE - discount / HUNDRED)
    profit_per_unit = sale_price - unit_cost

    revenue = to_money(sale_price * quantity)
    if item.fifo_cost_per_unit is None and item.cost_of_goods_sold is not None:
        cogs = to_money(item.cost_of_goods_sold)
    else:
        cogs = to_money(unit_cost * quantity)

    return ItemProfit(
        product_id=item.product_id,
        product_name=item.product_name,
        quantity=quantity,
        unit_price=unit_price,
        discount_percent=discount,
        sale_price_after_discount=to_money(sale_price),
        fifo_cost_per_unit=to_money(unit_cost),
        profit_per_unit=to_money(profit_per_unit),
        profit_percent=safe_percent(profit_per_unit, sale_price),
        revenue=revenue,
        cost_of_goods_sold=cogs,
        profit=revenue - cogs,
    )


def build_profit_report(items: Iterable[ProfitItemInput]) -> ProfitReport:
    """
    Group sold lines by invoice and aggregate.

    Groups keep the order in which their first line appears. The average
    profit percent is weighted by revenue: total_profit / total_revenue x 100.
    """
    groups: dict[object, dict] = {}
    for item in items:
        key = item.document_id or item.document_number
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                "document_id": item.document_id,
                "document_number": item.document_number,
                "issue_date": item.issue_date,
                "party_name": item.party_name,
                "items": [],
            }
        group["items"].append(calculate_item_profit(item))

    profit_groups = []
    total_quantity = ZERO
    total_revenue = total_cogs = total_profit = to_money(ZERO)

    for group in groups.values():
        lines = group["items"]
        revenue = sum((line.revenue for line in lines), to_money(ZERO))
        cogs = sum((line.cost_of_goods_sold for line in lines), to_money(ZERO))
        profit = sum((line.profit for line in lines), to_money(ZERO))

        profit_groups.append(ProfitGroup(
            document_id=group["document_id"],
            document_number=group["document_number"],
            issue_date=group["issue_date"],
            party_name=group["party_name"],
            items=lines,
            revenue=revenue,
            cost_of_goods_sold=cogs,
            profit=profit,
            profit_percent=safe_percent(profit, revenue),
        ))

        total_quantity += sum((line.quantity for line in lines), ZERO)
        total_revenue += revenue
        total_cogs += cogs
        total_profit += profit

    return ProfitReport(
        groups=profit_groups,
        total_quantity=total_quantity,
        total_revenue=total_revenue,
        total_cost_of_goods_sold=total_cogs,
        total_profit=total_profit,
        average_profit_percent=safe_percent(total_profit, total_revenue),
    )
