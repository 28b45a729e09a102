"""
Order arithmetic shared by the routers.

Everything here is a single pass over rows that were already fetched:
no sessions, no I/O. Missing numeric values count as 0.
"""
from typing import Dict, Iterable, List, Optional, Sequence

# Copied from the first batch entry onto later entries that leave them blank
BATCH_SHARED_FIELDS = ("loading_charge", "tax_rate", "invoice_number")


def _num(value) -> float:
    return value or 0.0


def order_amount(items: Iterable) -> float:
    """Sum of (price + commission) * quantity over the order items."""
    return sum(
        (_num(item.price) + _num(item.commission)) * _num(item.quantity)
        for item in items
    )


def items_quantity(items: Iterable) -> float:
    return sum(_num(item.quantity) for item in items)


def dispatched_quantity(dispatches: Iterable) -> float:
    return sum(_num(d.quantity) for d in dispatches)


def order_total_quantity(order, items: Iterable) -> float:
    # Stored total wins; older rows may not carry one
    return order.total_quantity or items_quantity(items)


def remaining_quantity(total_quantity: float, dispatches: Iterable) -> float:
    return _num(total_quantity) - dispatched_quantity(dispatches)


def latest_payment(payments: Sequence):
    if not payments:
        return None
    return max(payments, key=lambda p: p.created_at)


def payment_status(payments: Sequence, stored_status: Optional[str] = None) -> str:
    latest = latest_payment(payments)
    if latest is not None and latest.payment_status:
        return latest.payment_status
    return stored_status or "pending"


def average_item_price(items: Sequence) -> float:
    if not items:
        return 0.0
    return sum(_num(item.price) for item in items) / len(items)


def dispatch_receivable(dispatch) -> float:
    """(price + gauge + loading) * quantity, plus tax at tax_rate percent."""
    base_amount = (
        _num(dispatch.dispatch_price)
        + _num(dispatch.gauge_difference)
        + _num(dispatch.loading_charge)
    ) * _num(dispatch.quantity)
    tax_amount = base_amount * (_num(dispatch.tax_rate) / 100.0)
    return base_amount + tax_amount


def total_receivable(dispatches: Iterable) -> float:
    return sum(dispatch_receivable(d) for d in dispatches)


def apply_batch_defaults(entries: Sequence) -> List:
    """
    Return copies of the batch entries where loading charge, tax rate and
    invoice number fall back to the first entry's values.
    """
    if not entries:
        return []

    first = entries[0]
    result = [first]
    for entry in entries[1:]:
        updates = {
            field: getattr(first, field)
            for field in BATCH_SHARED_FIELDS
            if getattr(entry, field) is None and getattr(first, field) is not None
        }
        result.append(entry.model_copy(update=updates) if updates else entry)
    return result


def running_totals(entries: Iterable) -> List[float]:
    totals = []
    running = 0.0
    for entry in entries:
        running += _num(entry.quantity)
        totals.append(running)
    return totals


def summarize_orders(
    orders: Iterable,
    items_by_order: Dict[str, list],
    dispatches_by_order: Dict[str, list],
) -> Dict[str, float]:
    """
    Dashboard totals per order type.

    Amounts use the item lines, quantities use the order's stored total and
    the receivable covers dispatches of both order types.
    """
    stats = {
        "total_sales_amount": 0.0,
        "total_purchase_amount": 0.0,
        "sales_quantity": 0.0,
        "purchase_quantity": 0.0,
        "sales_dispatched": 0.0,
        "purchase_dispatched": 0.0,
        "sales_remaining": 0.0,
        "purchase_remaining": 0.0,
        "total_receivable": 0.0,
    }

    for order in orders:
        items = items_by_order.get(order.id, [])
        dispatches = dispatches_by_order.get(order.id, [])
        stats["total_receivable"] += total_receivable(dispatches)

        if order.type == "sale":
            prefix, amount_key = "sales", "total_sales_amount"
        elif order.type == "purchase":
            prefix, amount_key = "purchase", "total_purchase_amount"
        else:
            continue

        total = _num(order.total_quantity)
        dispatched = dispatched_quantity(dispatches)
        stats[amount_key] += order_amount(items)
        stats[f"{prefix}_quantity"] += total
        stats[f"{prefix}_dispatched"] += dispatched
        stats[f"{prefix}_remaining"] += total - dispatched

    return stats
