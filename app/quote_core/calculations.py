"""
Business calculation functions for quotations.
Line totals, subtotal, header discount, tax and grand total in Decimal.
Nothing is rounded here except an evaluated price expression; rounding happens
when amounts are formatted or persisted.
"""

import ast
import operator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Union

from quote_core.models import DiscountType


ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


def to_decimal(value: Any) -> Decimal:
    """
    Convert loose numeric input to Decimal.

    None, empty strings, non-numeric text, NaN and infinities become zero so
    the arithmetic helpers stay total functions.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def round_money(value: Any, places: int = 2) -> Decimal:
    """Round half-up to the given number of decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _discount_type(value: Union[DiscountType, str, None]) -> DiscountType:
    if isinstance(value, DiscountType):
        return value
    if value is None:
        return DiscountType.PERCENTAGE
    return DiscountType(str(value).lower())


def line_total(item: Any) -> Decimal:
    """
    Calculate the total of one line item.

    gross = moq * unit_price, minus discount_percent of gross.
    """
    gross = to_decimal(_field(item, 'moq')) * to_decimal(_field(item, 'unit_price'))
    line_discount = gross * (to_decimal(_field(item, 'discount_percent')) / HUNDRED)
    return gross - line_discount


def subtotal(items: Iterable[Any]) -> Decimal:
    """Sum of line totals in listed order."""
    return sum((line_total(item) for item in items), ZERO)


def discount_amount(subtotal_amount: Any, discount_type: Union[DiscountType, str, None],
                    discount_value: Any) -> Decimal:
    """
    Header discount amount.

    A fixed discount is returned verbatim and may exceed the subtotal; the
    after-discount base is allowed to go negative.
    """
    value = to_decimal(discount_value)
    if _discount_type(discount_type) == DiscountType.PERCENTAGE:
        return to_decimal(subtotal_amount) * (value / HUNDRED)
    return value


def tax_amount(after_discount: Any, tax_rate: Any) -> Decimal:
    return to_decimal(after_discount) * (to_decimal(tax_rate) / HUNDRED)


def total(items: Iterable[Any], tax_rate: Any,
          discount_type: Union[DiscountType, str, None] = DiscountType.PERCENTAGE,
          discount_value: Any = ZERO) -> Decimal:
    """Grand total: (subtotal - discount) + tax on the discounted base."""
    return calc_quotation_totals(items, tax_rate, discount_type, discount_value).total


@dataclass(frozen=True)
class QuotationTotals:
    subtotal: Decimal
    discount: Decimal
    after_discount: Decimal
    tax: Decimal
    total: Decimal


def calc_quotation_totals(items: Iterable[Any], tax_rate: Any,
                          discount_type: Union[DiscountType, str, None] = DiscountType.PERCENTAGE,
                          discount_value: Any = ZERO) -> QuotationTotals:
    """
    Calculate all quotation-level amounts in one pass.

    Args:
        items: Line items (objects or dicts with moq, unit_price, discount_percent)
        tax_rate: Tax percentage in [0, 100]
        discount_type: Percentage of subtotal or fixed amount
        discount_value: Discount percentage or fixed amount

    Returns:
        QuotationTotals with unrounded subtotal, discount, after_discount, tax
        and total.
    """
    items_subtotal = subtotal(items)
    discount = discount_amount(items_subtotal, discount_type, discount_value)
    after_discount = items_subtotal - discount
    tax = tax_amount(after_discount, tax_rate)
    return QuotationTotals(
        subtotal=items_subtotal,
        discount=discount,
        after_discount=after_discount,
        tax=tax,
        total=after_discount + tax,
    )


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _eval_node(node: ast.AST) -> Decimal:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
            and not isinstance(node.value, bool):
        # Re-read the literal text through str() to avoid binary float noise
        return Decimal(str(node.value))
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise ValueError("Unsupported price expression")


def evaluate_price_expression(expression: str) -> Decimal:
    """
    Evaluate a unit price typed as arithmetic, e.g. "12.5*1.17" or "=100/3".

    Only numbers, + - * / and parentheses are accepted. The result is rounded
    to 2 decimals immediately.
    """
    text = (expression or "").strip().lstrip("=").replace(",", "")
    if not text:
        raise ValueError("Empty price expression")
    try:
        tree = ast.parse(text, mode="eval")
        value = _eval_node(tree)
    except (SyntaxError, ZeroDivisionError, InvalidOperation) as exc:
        raise ValueError(f"Invalid price expression: {expression!r}") from exc
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
