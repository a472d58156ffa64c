"""Exception hierarchy for RaceGuard."""


class RaceGuardError(Exception):
    """Base class for all RaceGuard errors"""


class ProgramLoadError(RaceGuardError):
    """The IR could not be loaded or decoded. Fatal for the analysis run."""

    def __init__(self, message: str, source: str = ""):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class ConfigurationError(RaceGuardError):
    """The analysis configuration does not match the loaded program"""
