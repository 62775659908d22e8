# pixelmorpher/billing/credits.py
from pixelmorpher.constants import CREDIT_FEE


def required_credits(credit_fee: int = CREDIT_FEE) -> int:
    return abs(credit_fee)


def has_sufficient_credits(credit_balance: int, credit_fee: int = CREDIT_FEE) -> bool:
    return credit_balance >= required_credits(credit_fee)
