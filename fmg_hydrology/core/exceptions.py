"""Errors raised by the hydrology pass."""

# Accumulation counters are int64; cell ids are addressed as int32 in the
# flow target buffer, which bounds the graph size.
MAX_SUPPORTED_CELLS = 2**31 - 1


class HydrologyError(Exception):
    """Base class for failures that abort a hydrology pass."""


class ConfigurationError(HydrologyError, ValueError):
    """Invalid hydrology options, rejected before any stage runs."""


class AccumulationOverflowError(HydrologyError, OverflowError):
    """The cell graph is larger than the accumulation buffers can address."""

    def __init__(self, n_cells: int):
        super().__init__(
            f"{n_cells} cells exceeds the maximum supported cell count "
            f"({MAX_SUPPORTED_CELLS})"
        )
        self.n_cells = n_cells
