"""Exceptions raised by the core pipeline.

Numeric code never raises for missing history or bad values; it emits
NaN / False at the affected index instead. The errors here cover
structurally inconsistent inputs, which indicate a bug in whatever
produced them.
"""


class ContractViolation(ValueError):
    """Input breaks a structural invariant of the series model.

    Examples: bars that are not strictly increasing in time, an index
    map that references a bucket that does not exist, or two series
    that should be aligned but have different lengths.
    """


def require_same_length(name: str, expected: int, actual: int) -> None:
    """Raise ContractViolation if an aligned series has the wrong length."""
    if expected != actual:
        raise ContractViolation(
            f"{name} has length {actual}, expected {expected} (series must be aligned by index)"
        )
