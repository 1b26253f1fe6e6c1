"""Parsing utilities for amounts, addresses and timestamps.

Token amounts cross the pipeline in two forms: integer base units (wei) as
reported on-chain, and decimal strings in the human unit (ether) as stored.
Both are plain strings at runtime, so they carry distinct NewTypes and are
only converted through to_base_units and from_base_units. All arithmetic is
done with Decimal in a local context wide enough for uint256 values.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
import re

from typing import NewType

from src.helpers.constants import ETHER_DECIMALS, UNIT_DECIMALS
from src.helpers.errors import InvalidAddress, InvalidAmount, MalformedRecord


DecimalAmount = NewType("DecimalAmount", str)
"""Amount in the human unit, e.g. "1.5" ether"""

BaseUnitAmount = NewType("BaseUnitAmount", str)
"""Amount in integer base units, e.g. "1500000000000000000" wei"""

# uint256 has 78 digits, leave room for 18 fractional digits on top
DECIMAL_PRECISION = 100

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
_TX_HASH_RE = re.compile(r"0x[0-9a-fA-F]{64}")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _unit_decimals(unit: str | int) -> int:
    """Resolve a unit name or explicit decimals count.

    Raises:
        ValueError: If the unit is unknown or negative
    """
    if isinstance(unit, int) and not isinstance(unit, bool):
        if unit < 0:
            msg = f"Unit decimals cannot be negative: {unit}"
            raise ValueError(msg)
        return unit
    decimals = UNIT_DECIMALS.get(str(unit).lower())
    if decimals is None:
        msg = f"Unknown unit: {unit}"
        raise ValueError(msg)
    return decimals


def parse_decimal(value: str | int | Decimal) -> Decimal:
    """Parse a decimal amount without going through float.

    Args:
        value: Decimal string, integer or Decimal

    Returns:
        Decimal: Parsed finite value

    Raises:
        InvalidAmount: If the value is not a finite number, or is a float/bool

    Example:
        >>> parse_decimal("1.50")
        Decimal('1.50')
    """
    if isinstance(value, (bool, float)):
        msg = f"Amount must be a string, int or Decimal, got {type(value).__name__}"
        raise InvalidAmount(msg)
    try:
        parsed = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        msg = f"Invalid amount: {value!r}"
        raise InvalidAmount(msg) from None
    if not parsed.is_finite():
        msg = f"Invalid amount: {value!r}"
        raise InvalidAmount(msg)
    return parsed


def format_decimal(value: Decimal) -> DecimalAmount:
    """Render a Decimal in plain notation without trailing zeros.

    Example:
        >>> format_decimal(Decimal("1.500"))
        '1.5'
        >>> format_decimal(Decimal("1E+2"))
        '100'
    """
    if value.is_zero():
        return DecimalAmount("0")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return DecimalAmount(format(value.normalize(), "f"))


def from_base_units(
    base_amount: BaseUnitAmount | str | int, unit: str | int = "ether"
) -> DecimalAmount:
    """Convert an integer base-unit amount to a decimal string.

    Args:
        base_amount: Integer amount in base units (int or integer string)
        unit: Target unit name ("wei", "gwei", "ether") or decimals count

    Returns:
        DecimalAmount: Exact decimal string in the target unit

    Raises:
        InvalidAmount: If base_amount is not an integer

    Example:
        >>> from_base_units("1500000000000000000")
        '1.5'
        >>> from_base_units(0)
        '0'
    """
    decimals = _unit_decimals(unit)
    if isinstance(base_amount, bool):
        msg = f"Invalid base-unit amount: {base_amount!r}"
        raise InvalidAmount(msg)
    if isinstance(base_amount, int):
        integer = base_amount
    elif isinstance(base_amount, str) and _INTEGER_RE.fullmatch(base_amount.strip()):
        integer = int(base_amount.strip())
    else:
        msg = f"Invalid base-unit amount: {base_amount!r}"
        raise InvalidAmount(msg)

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return format_decimal(Decimal(integer).scaleb(-decimals))


def to_base_units(
    decimal_amount: DecimalAmount | str | int | Decimal, unit: str | int = "ether"
) -> BaseUnitAmount:
    """Convert a decimal amount to an integer base-unit string.

    Args:
        decimal_amount: Amount in the given unit
        unit: Source unit name ("wei", "gwei", "ether") or decimals count

    Returns:
        BaseUnitAmount: Integer string in base units

    Raises:
        InvalidAmount: If the amount is not numeric or has more fractional
            digits than the unit allows

    Example:
        >>> to_base_units("1.5")
        '1500000000000000000'
    """
    decimals = _unit_decimals(unit)
    amount = parse_decimal(decimal_amount)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            msg = f"{decimal_amount!r} has more than {decimals} decimal places"
            raise InvalidAmount(msg)
        return BaseUnitAmount(str(int(scaled)))


def add_amounts(*amounts: DecimalAmount | str | Decimal) -> DecimalAmount:
    """Sum decimal amounts exactly.

    Raises:
        InvalidAmount: If any amount is not numeric
    """
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        total = sum((parse_decimal(amount) for amount in amounts), Decimal(0))
        return format_decimal(total)


def divide_amount(
    amount: DecimalAmount | str | Decimal,
    divisor: Decimal | int,
    places: int = ETHER_DECIMALS,
) -> DecimalAmount:
    """Divide an amount, rounding half-even to a fixed number of places.

    Returns "0" when the divisor is zero.
    """
    divisor = Decimal(divisor)
    if divisor.is_zero():
        return DecimalAmount("0")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        quotient = parse_decimal(amount) / divisor
        return format_decimal(
            quotient.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)
        )


def is_valid_address(value: object) -> bool:
    """Check for 0x followed by 40 hex digits (case-insensitive).

    Example:
        >>> is_valid_address("0x" + "ab" * 20)
        True
        >>> is_valid_address("0x1234")
        False
    """
    return isinstance(value, str) and _ADDRESS_RE.fullmatch(value) is not None


def normalize_address(value: object) -> str:
    """Validate an address and return it lowercased.

    Raises:
        InvalidAddress: If the value is not a valid address
    """
    if not is_valid_address(value):
        msg = f"{value!r} is not a valid Ethereum address"
        raise InvalidAddress(msg)
    return str(value).lower()


def is_valid_tx_hash(value: object) -> bool:
    """Check for 0x followed by 64 hex digits."""
    return isinstance(value, str) and _TX_HASH_RE.fullmatch(value) is not None


def parse_unix_timestamp(value: int | str | datetime) -> int:
    """Parse a timestamp into Unix seconds.

    Accepts integers, numeric strings (as the subgraph returns them), ISO-8601
    strings and datetimes.

    Args:
        value: Timestamp in any supported form

    Returns:
        int: Unix timestamp in seconds

    Raises:
        MalformedRecord: If the value cannot be interpreted

    Example:
        >>> parse_unix_timestamp("1700000000")
        1700000000
        >>> parse_unix_timestamp("2023-11-14T22:13:20Z")
        1700000000
    """
    if isinstance(value, bool):
        msg = f"Invalid timestamp: {value!r}"
        raise MalformedRecord(msg)
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=UTC)
        return int(moment.timestamp())
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(Decimal(text))
        except (InvalidOperation, OverflowError, ValueError):
            pass
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            msg = f"Invalid timestamp: {value!r}"
            raise MalformedRecord(msg) from None
        return parse_unix_timestamp(moment)
    msg = f"Invalid timestamp: {value!r}"
    raise MalformedRecord(msg)


def unix_to_datetime(value: int | str | datetime) -> datetime:
    """Parse a timestamp into a timezone-aware UTC datetime.

    Example:
        >>> unix_to_datetime("0")
        datetime.datetime(1970, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    return datetime.fromtimestamp(parse_unix_timestamp(value), tz=UTC)


__all__ = [
    "BaseUnitAmount",
    "DecimalAmount",
    "add_amounts",
    "divide_amount",
    "format_decimal",
    "from_base_units",
    "is_valid_address",
    "is_valid_tx_hash",
    "normalize_address",
    "parse_decimal",
    "parse_unix_timestamp",
    "to_base_units",
    "unix_to_datetime",
]
