"""
Validator set membership checks.
"""

from typing import Iterable

from .types import ValidatorEntry


def is_qualified(validators: Iterable[ValidatorEntry], account_name: str) -> bool:
    """True if `account_name` is listed among `validators`."""
    return any(validator.account == account_name for validator in validators)
