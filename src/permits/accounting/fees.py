"""
Statutory permit fee formula.

    administration fee = annual recurrent fee / 365 x processing days
    technical fee      = work plan amount
    total              = administration fee + technical fee

Amounts are Decimal, rounded half-up to cents.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, NamedTuple, Union

from permits.applications.applications import ApplicationType


DEFAULT_WORK_PLAN_AMOUNT = Decimal('15500')
DAYS_PER_YEAR = 365
CENTS = Decimal('0.01')

ADMINISTRATION_FORM = 'Form 2'

# Supporting form required per application type
ADDITIONAL_FORMS: Dict[ApplicationType, str] = {
    ApplicationType.NEW: 'Form 9',
    ApplicationType.COMPLIANCE_REPORT: 'Form 5',
    ApplicationType.ENFORCEMENT_RESPONSE: 'Form 6',
    ApplicationType.AMALGAMATION: 'Form 7',
    ApplicationType.AMENDMENT: 'Form 8',
    ApplicationType.RENEWAL: 'Form 10',
    ApplicationType.TRANSFER: 'Form 11',
    ApplicationType.SURRENDER: 'Form 12',
}

BASE_PROCESSING_DAYS: Dict[ApplicationType, int] = {
    ApplicationType.NEW: 86,
    ApplicationType.AMENDMENT: 30,
    ApplicationType.TRANSFER: 21,
    ApplicationType.AMALGAMATION: 45,
    ApplicationType.COMPLIANCE_REPORT: 14,
    ApplicationType.RENEWAL: 21,
    ApplicationType.SURRENDER: 14,
    ApplicationType.ENFORCEMENT_RESPONSE: 30,
}
DEFAULT_PROCESSING_DAYS = 30


class FeeCategory(NamedTuple):
    name: str
    multiplier: Decimal
    description: str


FEE_CATEGORIES: Dict[str, FeeCategory] = {
    'Red Category': FeeCategory(
        'Red Category', Decimal('1.5'), 'High impact projects requiring comprehensive EIA'),
    'Orange Category': FeeCategory(
        'Orange Category', Decimal('1.2'), 'Medium impact projects requiring environmental clearance'),
    'Green Category': FeeCategory(
        'Green Category', Decimal('1.0'), 'Low impact projects with minimal requirements'),
}
DEFAULT_CATEGORY = 'Green Category'


@dataclass(frozen=True)
class FeeBreakdown:
    administration_fee: Decimal
    technical_fee: Decimal
    total_fee: Decimal
    form_number: str
    additional_form: str

    def to_dict(self) -> Dict:
        return {
            'administration_fee': str(self.administration_fee),
            'technical_fee': str(self.technical_fee),
            'total_fee': str(self.total_fee),
            'form_number': self.form_number,
            'additional_form': self.additional_form,
        }


Number = Union[int, float, str, Decimal]


def _decimal(value: Number, name: str) -> Decimal:
    # via str() so floats like 0.1 keep their printed value
    amount = Decimal(str(value))
    if amount < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return amount


def _application_type(application_type):
    try:
        return ApplicationType(application_type)
    except ValueError:
        return None


def calculate_fees(annual_recurrent_fee: Number, processing_days: Number, application_type,
                   work_plan_amount: Number = DEFAULT_WORK_PLAN_AMOUNT) -> FeeBreakdown:
    """
    Fee notice amounts for an application.

    Args:
        annual_recurrent_fee: Annual recurrent fee for the permit
        processing_days: Days the application takes to process
        application_type: ApplicationType or its value; unknown types get
                          the administration form only
        work_plan_amount: Technical (work plan) fee

    Returns:
        FeeBreakdown

    Raises:
        ValueError: If any amount is negative
    """
    annual = _decimal(annual_recurrent_fee, 'annual_recurrent_fee')
    days = _decimal(processing_days, 'processing_days')
    technical = _decimal(work_plan_amount, 'work_plan_amount')

    administration = (annual / DAYS_PER_YEAR * days).quantize(CENTS, rounding=ROUND_HALF_UP)
    technical = technical.quantize(CENTS, rounding=ROUND_HALF_UP)

    app_type = _application_type(application_type)
    return FeeBreakdown(
        administration_fee=administration,
        technical_fee=technical,
        total_fee=administration + technical,
        form_number=ADMINISTRATION_FORM,
        additional_form=ADDITIONAL_FORMS.get(app_type, ADMINISTRATION_FORM),
    )


def get_fee_category(category: str) -> FeeCategory:
    """Impact category by name; unknown names are treated as Green."""
    return FEE_CATEGORIES.get(category, FEE_CATEGORIES[DEFAULT_CATEGORY])


def estimate_processing_days(application_type, category: str) -> int:
    base = BASE_PROCESSING_DAYS.get(_application_type(application_type), DEFAULT_PROCESSING_DAYS)
    return math.ceil(base * get_fee_category(category).multiplier)
