# stacklens/profiling/errors.py
"""Exception hierarchy for profile processing.

Internal invariant violations (a stack that was never translated, an
unknown transform variant) are raised as ``TransformError`` subclasses and
must propagate. Parse-level problems in transform tokens are not errors at
all: they are logged and the offending token is dropped.
"""

from __future__ import annotations


class StacklensError(Exception):
    """Base class for all stacklens errors."""

    pass


class TransformError(StacklensError):
    """A transform could not be applied to a thread."""

    pass


class StackTranslationError(TransformError):
    """An old stack index has no entry in the old-to-new translation."""

    def __init__(self, stack_index: int, transform_name: str = ""):
        self.stack_index = stack_index
        self.transform_name = transform_name
        where = f" in {transform_name}" if transform_name else ""
        super().__init__(
            f"Could not find a stack when converting old stack {stack_index} "
            f"to a new stack{where}."
        )


class UnknownTransformError(TransformError):
    """The transform variant is not known to the engine."""

    def __init__(self, transform: object):
        self.transform = transform
        super().__init__(f"Unknown transform: {transform!r}")


class ProfileFormatError(StacklensError):
    """A profile file or text sample block is malformed."""

    pass
