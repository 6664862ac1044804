"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Integer arithmetic on money amounts (half-up rounding)
- UUID validation
- Short human-readable references

Usage:
    from core.helpers import round_half_up_div, validate_uuid

    points = round_half_up_div(10_000, 200)  # 50
"""

from __future__ import annotations

import uuid


def round_half_up_div(numerator: int, divisor: int) -> int:
    """
    Divide two non-negative integers, rounding halves up.

    Python's round() uses banker's rounding, which would award 0 points
    for a 100 cent order with a divisor of 200. Amounts here are integer
    cents, so the division is done in integer arithmetic.

    Args:
        numerator: Non-negative integer (e.g. an order total in cents)
        divisor: Positive integer

    Returns:
        numerator / divisor rounded to the nearest integer, halves up

    Raises:
        ValueError: If numerator is negative or divisor is not positive

    Example:
        round_half_up_div(100, 200)  # 1
        round_half_up_div(99, 200)   # 0
    """
    if divisor <= 0:
        raise ValueError(f"divisor must be positive, got {divisor}")
    if numerator < 0:
        raise ValueError(f"numerator must be non-negative, got {numerator}")
    return (numerator * 2 + divisor) // (divisor * 2)


def validate_uuid(value: str) -> bool:
    """
    Check if a string is a valid UUID.

    Example:
        validate_uuid("550e8400-e29b-41d4-a716-446655440000")  # True
        validate_uuid("order-123")  # False
    """
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def short_reference(value, length: int = 6) -> str:
    """
    Return the last `length` characters of an identifier, upper-cased.

    Used for human-facing references such as "Order #A1B2C3".
    """
    text = str(value).replace("-", "")
    return text[-length:].upper()
