from .commissions import (  # noqa: F401
    calculate_fees,
    get_commission_rates,
    load_platform_defaults,
)
from .invoice_numbers import (  # noqa: F401
    generate_invoice_number,
    is_valid_invoice_number,
    get_invoice_date,
)
