"""Utility modules for the fulfillment kernel."""

from fulfillment_kernel.utils.order_numbers import generate_order_number

__all__ = ["generate_order_number"]
