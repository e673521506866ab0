"""
Pricing table for translation credits.

``pricing.yaml`` holds the credit value, the per-workflow credit rates and the
subscription plans. The file is parsed once per path and kept as a frozen
pydantic model, so a typo in the YAML stops the service at startup rather
than mispricing an order.
"""

import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_PRICING_PATH = Path(__file__).resolve().parent / "pricing.yaml"


class SubscriptionPlan(BaseModel):
    """One subscription plan as listed under ``subscription_plans``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    monthly_price: Decimal
    monthly_credits: int = Field(ge=0)
    features: List[str] = []


class PricingConfig(BaseModel):
    """
    Parsed ``pricing.yaml``.

    Attributes:
        currency_symbol: Prefix for formatted costs (e.g. "£").
        credit_value: Currency value of one credit (e.g. Decimal("0.001")).
        workflow_rates: Credits per character by workflow id.
            Example: {"ai-neural": 1, "ai-translation-qc": 2}
        subscription_plans: Plans by plan id.
    """

    # unknown keys are an error, and the table cannot change once loaded
    model_config = ConfigDict(extra="forbid", frozen=True)

    currency_symbol: str
    credit_value: Decimal
    workflow_rates: Dict[str, Decimal]
    subscription_plans: Dict[str, SubscriptionPlan]

    @field_validator("workflow_rates")
    @classmethod
    def validate_rates(cls, v):
        if not v:
            raise ValueError("workflow_rates cannot be empty")
        for workflow, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Rate for workflow '{workflow}' must be positive")
        return v


@lru_cache(maxsize=4)
def load_pricing_config(path: str = str(DEFAULT_PRICING_PATH)) -> PricingConfig:
    """
    Read and validate a pricing file; repeated calls with the same path
    return the same object.

    Raises FileNotFoundError for a missing file, yaml.YAMLError for broken
    YAML and pydantic's ValidationError for a file with the wrong shape.

        >>> load_pricing_config().workflow_rates["ai-translation-human"]
        Decimal('3')
    """
    source = Path(path).resolve()
    if not source.is_file():
        logger.error(f"[PRICING] Missing file: {source}")
        raise FileNotFoundError(f"Pricing configuration file not found: {source}")

    raw = source.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        logger.error(f"[PRICING] {source} is not valid YAML: {e}")
        raise

    try:
        pricing = PricingConfig(**data)
    except ValidationError as e:
        logger.error(f"[PRICING] {source} rejected: {e.error_count()} problem(s)")
        raise

    logger.info(
        f"[PRICING] Loaded {source.name}: {len(pricing.workflow_rates)} workflows, "
        f"{len(pricing.subscription_plans)} plans"
    )
    return pricing
