# pos_edge/domain/printing/receipt.py
from datetime import datetime


def format_currency(cents) -> str:
    value = (cents or 0) / 100
    return f"$ {value:.2f}"


def render_receipt(payload: dict) -> str:
    """Plain-text receipt for an ``{order, items}`` payload (amounts in cents)."""
    order = payload.get("order") or {}
    items = payload.get("items") or []

    lines = ["*** FOOD TRUCK ***", f"ORDER {order.get('id', '')}"]
    created_at = order.get("createdAt")
    if created_at:
        lines.append(datetime.fromtimestamp(created_at / 1000).strftime("%Y-%m-%d %H:%M:%S"))
    lines.append("")
    for item in items:
        qty = item.get("qty", 0)
        price = item.get("price", 0)
        lines.append(f"{qty} x {item.get('name', '')}  {format_currency(price * qty)}")
    lines.append("")
    lines.append(f"Subtotal: {format_currency(order.get('subtotal'))}")
    lines.append("")
    lines.append("Thank you!")
    lines.append("")
    return "\n".join(lines)
