"""
Custom exceptions for the trade ingester.
"""


class TradeIngestError(Exception):
    """Base exception for trade ingester errors."""
    pass


# =============================================================================
# Venue errors (transient, contained within one fetch cycle)
# =============================================================================

class VenueError(TradeIngestError):
    """Base class for failures talking to the market venue."""
    
    def __init__(self, message: str, endpoint: str = None):
        self.endpoint = endpoint
        super().__init__(message)


class VenueAPIError(VenueError):
    """Error from a venue API response."""
    
    def __init__(self, message: str, status_code: int = None, endpoint: str = None, response_body: str = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, endpoint=endpoint)


class RateLimitExceededError(VenueAPIError):
    """Rate limit exceeded (HTTP 429)."""
    
    def __init__(self, endpoint: str = None, response_body: str = None):
        super().__init__(
            "Rate limit exceeded",
            status_code=429,
            endpoint=endpoint,
            response_body=response_body
        )


class NetworkTimeoutError(VenueError):
    """Network request timed out."""
    
    def __init__(self, endpoint: str = None, timeout: float = None):
        self.timeout = timeout
        message = f"Request timed out after {timeout}s" if timeout else "Request timed out"
        super().__init__(message, endpoint=endpoint)


class VenueUnavailableError(VenueError):
    """Venue could not be reached (connection refused, DNS, reset)."""
    pass


class MalformedResponseError(VenueError):
    """Venue answered with a payload that does not match the expected shape."""
    
    def __init__(self, message: str, endpoint: str = None, payload: object = None):
        self.payload = payload
        super().__init__(message, endpoint=endpoint)


# =============================================================================
# Persistence errors
# =============================================================================

class PersistenceError(TradeIngestError):
    """Error reading from or writing to the persistence store."""
    
    def __init__(self, message: str, query: str = None):
        self.query = query
        super().__init__(message)


class NoResultError(PersistenceError):
    """A single-row query matched no rows."""
    pass


class ConfigError(TradeIngestError):
    """Invalid or unreadable configuration."""
    
    def __init__(self, message: str, config_file: str = None):
        self.config_file = config_file
        super().__init__(message)
