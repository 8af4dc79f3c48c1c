# scraper/errors.py


class ScannerError(Exception):
    """Base class for every failure raised while scanning a topic."""


class ExtractionError(ScannerError):
    """The __NEXT_DATA__ data island is missing or is not valid JSON."""


class ParseError(ScannerError):
    """The listing JSON does not have the shape the parser expects."""


class BotBlockedError(ScannerError):
    """The site answered with its bot-challenge page instead of content."""


class TransportError(ScannerError):
    """Network failure while fetching a listing or item page."""


class StorageError(ScannerError):
    """A snapshot file could not be read, decoded or written."""


class ConfigError(ScannerError):
    """Configuration is missing or invalid."""


class DeliveryError(ScannerError):
    """
    The messaging API refused or failed to deliver a message.

    Args:
        message (str): Human readable summary
        status_code (int, optional): HTTP status returned by the API
        description (str, optional): The API's own error description
    """

    def __init__(self, message, status_code=None, description=None):
        super().__init__(message)
        self.status_code = status_code
        self.description = description
