from .fees import (
    FeeBreakdown,
    FeeCategory,
    FEE_CATEGORIES,
    ADDITIONAL_FORMS,
    BASE_PROCESSING_DAYS,
    DEFAULT_WORK_PLAN_AMOUNT,
    calculate_fees,
    get_fee_category,
    estimate_processing_days,
)
