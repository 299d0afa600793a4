"""Read-only query selectors."""

from fulfillment_kernel.selectors.base import BaseSelector
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.selectors.workload_selector import WorkloadSelector

__all__ = ["BaseSelector", "OrderSelector", "WorkloadSelector"]
