"""
Standard type definitions for database models.

Provides consistent types for monetary, point-volume and percentage fields.
"""

from sqlalchemy import DECIMAL

# Standard money type for amounts, balances, rebates
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Point volume (PV) is product-intrinsic and never converted to money
# Precision: 18 digits total, 4 after decimal point
PointVolumeType = DECIMAL(18, 4)

# Percentage for rebate and commission rates
# Precision: 7 digits total, 4 after decimal point
# Range: 0.0000 to 999.9999 (validated to 0..100 at write time)
PercentType = DECIMAL(7, 4)
