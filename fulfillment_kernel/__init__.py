"""
Fulfillment Kernel - order fulfillment assignment engine.

Tracks an order's lifecycle after payment and routes it to a procurement
officer:
- Idempotent payment confirmation
- Least-loaded officer selection with hard capacity limits
- Accept/reject assignment protocol with bounded auto-reassignment
- Order status derived from item statuses
"""

__version__ = "0.1.0"
