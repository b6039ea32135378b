class StationPulseError(Exception):
    """Base exception for all demand analysis errors."""
    pass

class InvalidRecordError(StationPulseError, ValueError):
    """Raised (or collected) when a demand record is outside its valid range."""
    pass

class ConfigurationError(StationPulseError):
    """Raised when analysis configuration is invalid."""
    pass

class CollaboratorError(StationPulseError):
    """Raised when the record store or a data file cannot be read."""
    pass
