"""Custom exception and warning classes for the PostPred package.

All errors raised for malformed posterior inputs inherit from `PostPredError`
so that callers can catch every package-specific failure with a single except
clause. The dimension and empty-draw errors additionally inherit from
`ValueError`, which is what they are from the caller's point of view.

Fitting failures raised by CmdStanPy are not wrapped and reach the caller
unchanged.
"""


class PostPredError(Exception):
    """Base class for all exceptions in the PostPred package.

    :param message: Error message describing the exception
    :type message: str

    Example:
        >>> try:
        ...     linear_predictor([1.0, 2.0], [0.5])
        ... except PostPredError as e:
        ...     print(f"PostPred error occurred: {e}")
    """


class InvalidDimensionError(PostPredError, ValueError):
    """Raised when the lengths or shapes of two aligned inputs disagree.

    The typical case is a covariate template whose length differs from the
    number of coefficients in a posterior draw. Inputs are never truncated or
    broadcast to make them fit.

    :param message: Error message naming the mismatched dimensions
    :type message: str
    """


class EmptyDrawSetError(PostPredError, ValueError):
    """Raised when a posterior summary is requested from zero draws.

    :param message: Error message describing the empty input
    :type message: str
    """


class NonSimplexRowWarning(UserWarning):
    """Warned when a class-probability row does not sum to one.

    Floating point accumulation makes small departures expected, so this is a
    warning rather than an error. Offending rows are reported, never
    renormalized.
    """
