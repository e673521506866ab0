"""
Pricing module for translation credits.
"""

from .pricing_config import PricingConfig, SubscriptionPlan, load_pricing_config
from .pricing_calculator import CostEstimate, estimate, format_credit_value

__all__ = [
    "PricingConfig",
    "SubscriptionPlan",
    "load_pricing_config",
    "CostEstimate",
    "estimate",
    "format_credit_value",
]
