"""
Standard type definitions for database models.

Provides consistent types for monetary and percentage fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for amounts, volumes, balances, payouts
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Precise percentage type for commission and payout rates
# Precision: 10 digits total, 4 after decimal point
# Suitable for: 10.0000%, 0.5000%
RatePercentType = DECIMAL(10, 4)
