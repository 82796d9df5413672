"""
MLM rewards core.

Sponsorship genealogy, purchase rebates, binary plan commissions and rank
advancement over a shared SQLAlchemy schema.
"""

__version__ = "1.0.0"
