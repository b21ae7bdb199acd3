# nqs_distance/errors.py
#
# Error taxonomy of the numerical core.
#
#   ConfigurationError  construction-time problems: sizes above the maxima,
#                       parameter arrays of the wrong length, wavefunctions
#                       that do not share a configuration space.
#   ResourceError       a device was requested but cannot be used.
#
# Numerical degeneracies (a vanishing normalization in the distance) are not
# exceptions; they are reported as nan together with a RuntimeWarning.


class ConfigurationError(ValueError):
    """Invalid sizes, shapes or combinations of objects."""


class ResourceError(RuntimeError):
    """Requested execution device is unavailable or allocation failed."""
