"""
Advisory preflight for the minter wallet.

These checks only log a warning. They never stop a mint.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from .errors import MintPreconditionError
from .models import PreconditionReport, WalletStatus

logger = logging.getLogger(__name__)

NANO_PER_TON = Decimal(10) ** 9
SAFETY_BUFFER_RATIO = Decimal("0.1")
SAFETY_BUFFER_FLOOR_TON = Decimal("0.02")
READY_STATES = ("active", "uninitialized")


def to_nano(value_ton: Union[Decimal, str, int, float]) -> int:
    try:
        value = Decimal(str(value_ton))
    except InvalidOperation:
        value = Decimal("NaN")
    if not value.is_finite() or value < 0:
        raise MintPreconditionError(
            f"Invalid TON amount configured: {value_ton}",
            code="INVALID_TON_AMOUNT",
            status_code=500,
        )
    return int((value * NANO_PER_TON).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_nano(value_nano: int) -> float:
    return float(Decimal(value_nano) / NANO_PER_TON)


def required_balance_nano(mint_value_ton: Union[Decimal, str, float]) -> int:
    mint_value = Decimal(str(mint_value_ton))
    safety_buffer = max(mint_value * SAFETY_BUFFER_RATIO, SAFETY_BUFFER_FLOOR_TON)
    return to_nano(mint_value) + to_nano(safety_buffer)


def check_wallet(status: WalletStatus, mint_value_ton: Union[Decimal, str, float]) -> PreconditionReport:
    required = required_balance_nano(mint_value_ton)
    warnings = []

    if status.balance_nano < required:
        missing = from_nano(required - status.balance_nano)
        warnings.append(
            f"Balance {from_nano(status.balance_nano)} TON may be insufficient "
            f"(needs {from_nano(required)}). Missing {missing:.3f} TON."
        )

    if status.state not in READY_STATES:
        warnings.append(f'Wallet state is "{status.state}"; expected active or uninitialized.')

    report = PreconditionReport(
        friendly_address=status.friendly_address,
        non_bounceable_address=status.non_bounceable_address,
        balance_nano=status.balance_nano,
        required_nano=required,
        state=status.state,
        warnings=warnings,
    )

    if warnings:
        payload = {
            "walletAddress": status.friendly_address,
            "walletAddressNonBounceable": status.non_bounceable_address,
            "balanceTon": from_nano(status.balance_nano),
            "requiredTon": from_nano(required),
            "state": status.state,
            "warnings": warnings,
        }
        logger.warning("Minter wallet precheck warnings: %s", payload, extra={"precheck": payload})

    return report
