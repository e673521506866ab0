"""
Cost estimator for translation requests.

Maps (character count, target language count, workflow) to the number of
credits required and their currency value. Pure functions, no I/O beyond
the cached pricing configuration.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Optional, Union

from portal.mongodb_models import Workflow
from portal.pricing.pricing_config import PricingConfig, load_pricing_config

logger = logging.getLogger(__name__)

WorkflowId = Union[Workflow, str]


@dataclass(frozen=True)
class CostEstimate:
    """Result of :func:`estimate`."""

    total_chars: int
    credits_required: int
    total_cost: str


def get_workflow_rate(workflow: WorkflowId, config: PricingConfig) -> Decimal:
    """
    Look up the per-character credit rate for a workflow.

    Raises:
        ValueError: If the workflow is not configured.
    """
    workflow_id = workflow.value if isinstance(workflow, Workflow) else workflow
    try:
        return config.workflow_rates[workflow_id]
    except KeyError:
        available = ", ".join(config.workflow_rates.keys())
        error_msg = f"Invalid workflow: '{workflow_id}'. Available workflows: {available}"
        logger.error(error_msg)
        raise ValueError(error_msg) from None


def format_credit_value(credits: int, config: Optional[PricingConfig] = None) -> str:
    """
    Format the currency value of a number of credits.

    Examples:
        >>> format_credit_value(2000)
        '£2.00'
        >>> format_credit_value(1)
        '£0.00'
    """
    config = config or load_pricing_config()
    value = (Decimal(credits) * config.credit_value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{config.currency_symbol}{value}"


def estimate(
    character_count: int,
    target_language_count: int,
    workflow: WorkflowId,
    config: Optional[PricingConfig] = None
) -> CostEstimate:
    """
    Estimate credits and cost for a translation request.

    Formula:
        total_chars      = character_count × target_language_count
        credits_required = ceil(total_chars × rate[workflow])
        total_cost       = credits_required × credit_value (2 decimal places)

    Degenerate inputs (no characters, no languages) are not rejected: they
    simply produce a zero estimate.

    Args:
        character_count: Characters in the source document.
        target_language_count: Number of target languages.
        workflow: Workflow id ("ai-neural", "ai-translation-qc", "ai-translation-human").
        config: Optional pricing configuration (tests inject their own).

    Returns:
        CostEstimate

    Raises:
        ValueError: If the workflow is unknown.

    Examples:
        >>> estimate(1000, 2, "ai-neural")
        CostEstimate(total_chars=2000, credits_required=2000, total_cost='£2.00')
        >>> estimate(1000, 2, "ai-translation-human").credits_required
        6000
    """
    config = config or load_pricing_config()
    rate = get_workflow_rate(workflow, config)

    total_chars = character_count * target_language_count
    credits_required = int((Decimal(total_chars) * rate).to_integral_value(rounding=ROUND_CEILING))
    total_cost = format_credit_value(credits_required, config)

    logger.debug(
        f"Estimate: {character_count} chars × {target_language_count} languages × {rate} "
        f"= {credits_required} credits ({total_cost})"
    )

    return CostEstimate(
        total_chars=total_chars,
        credits_required=credits_required,
        total_cost=total_cost
    )
