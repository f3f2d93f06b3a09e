"""
Billing engine for the Construction Pay Application System.

This module ties the calculators together into the full pipeline:
carry-forward, line items, G703 totals, change orders, G702 summary and
validation. Every step is a pure function of its inputs, so the pipeline can
be rerun on every edit and stale results simply discarded.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from cpas.billing.carry_forward import prior_applications, resolve_carry_forward
from cpas.billing.line_items import build_line_item
from cpas.billing.models import (
    ChangeOrder, G702Summary, G703Totals, PayApplication, PayAppLineItem,
    PayAppLineItemInput, Project, ProjectData, ValidationResult
)
from cpas.billing.money import CURRENCY_TOLERANCE, to_decimal
from cpas.billing.summary import calculate_g702_summary, retainage_variance
from cpas.billing.totals import calculate_g703_totals
from cpas.billing.validation import validate_pay_application

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayAppCalculation:
    """Everything derived for one pay application."""

    line_items: Tuple[PayAppLineItem, ...]
    totals: G703Totals
    summary: G702Summary
    validation: ValidationResult

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


def calculate_pay_application(
    project: Project,
    change_orders: Iterable[ChangeOrder],
    line_items: Iterable[PayAppLineItemInput],
    prior: Iterable[PayApplication]
) -> PayAppCalculation:
    """Run the full calculation pipeline for one pay application.

    Args:
        project: Project settings (contract sum, retainage rates)
        change_orders: All change orders for the project
        line_items: Raw G703 rows, with column D already carried forward
        prior: Snapshots that precede this application

    Returns:
        PayAppCalculation with computed rows, totals, summary and validation
    """
    rates = project.retainage_rates
    rows = tuple(build_line_item(item, rates) for item in line_items)
    totals = calculate_g703_totals(rows)
    summary = calculate_g702_summary(
        project.original_contract_sum,
        list(change_orders),
        totals,
        rates,
        list(prior)
    )
    validation = validate_pay_application(rows, summary, totals)

    return PayAppCalculation(line_items=rows, totals=totals, summary=summary, validation=validation)


class BillingEngine:
    """Runs the billing pipeline against a project's full data set."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize the billing engine.

        Args:
            config: Optional configuration dictionary (the ``billing`` section)
        """
        self.config = config or {}

    def start_line_items(self, data: ProjectData, application_number: int):
        """Carry-forward rows for a new application numbered ``application_number``."""
        prior = prior_applications(data.pay_applications, application_number)
        return resolve_carry_forward(data.sov_items, prior)

    def calculate(
        self,
        data: ProjectData,
        application_number: int,
        line_items: Iterable[PayAppLineItemInput]
    ) -> PayAppCalculation:
        """Calculate application ``application_number`` from the given rows.

        Args:
            data: Project data including application history
            application_number: Number of the application being calculated
            line_items: G703 rows for this application

        Returns:
            PayAppCalculation
        """
        prior = prior_applications(data.pay_applications, application_number)
        result = calculate_pay_application(data.project, data.change_orders, line_items, prior)

        logger.debug(
            f"Application #{application_number}: line 4 {result.summary.line4_total_completed_and_stored}, "
            f"line 8 {result.summary.line8_current_payment_due}, "
            f"{len(result.validation.errors)} error(s), {len(result.validation.warnings)} warning(s)"
        )

        variance = retainage_variance(result.line_items, result.summary)
        per_line = to_decimal(self.config.get("retainage_reconciliation_per_line", CURRENCY_TOLERANCE))
        allowed = per_line * max(1, len(result.line_items))
        if abs(variance) > allowed:
            logger.warning(
                f"Application #{application_number}: row retainage differs from G702 line 5c by {variance}"
            )

        return result

    def snapshot_calculation(self, application: PayApplication) -> PayAppCalculation:
        """Present a frozen snapshot in the same shape as a fresh calculation.

        The stored summary is used as is; only the G703 totals are summed
        from the stored rows, and validation is rerun for display.
        """
        totals = calculate_g703_totals(application.line_items)
        validation = validate_pay_application(application.line_items, application.summary, totals)
        return PayAppCalculation(
            line_items=tuple(application.line_items),
            totals=totals,
            summary=application.summary,
            validation=validation,
        )
