"""
Error types for the AutoKosten calculator.

Engine errors (invalid vehicle data, invalid input) are deterministic and end
the calculation. Resolver errors are absorbed wherever the missing data is
optional.
"""


class AutoKostenError(Exception):
    """Base class for all calculator errors."""

    error_type = "CALCULATION_ERROR"


class InvalidVehicleDataError(AutoKostenError):
    """Vehicle data is present but the first registration date is missing or unusable."""

    error_type = "INVALID_VEHICLE_DATA"


class InvalidInputError(AutoKostenError):
    """A user-supplied parameter is out of range."""

    error_type = "VALIDATION_ERROR"


class LookupNotFoundError(AutoKostenError):
    """The RDW registry has no base record for this kenteken."""

    error_type = "NOT_FOUND"


class UpstreamUnavailableError(AutoKostenError):
    """A single RDW dataset could not be fetched."""

    error_type = "UPSTREAM_ERROR"

    def __init__(self, dataset: str, message: str):
        super().__init__(f"{dataset}: {message}")
        self.dataset = dataset
