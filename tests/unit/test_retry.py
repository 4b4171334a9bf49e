"""
Unit tests for the retry helpers.
"""

from unittest.mock import MagicMock

import pytest

from trade_ingest.config import RetryConfig
from trade_ingest.utils.exceptions import (
    NetworkTimeoutError,
    RateLimitExceededError,
    VenueAPIError,
)
from trade_ingest.utils.retry import backoff_delay, retry, retry_from_config


class TestBackoffDelay:
    """Test delay calculation."""
    
    def test_grows_exponentially(self):
        assert backoff_delay(1, 0.5, 10.0, jitter=0) == 0.5
        assert backoff_delay(2, 0.5, 10.0, jitter=0) == 1.0
        assert backoff_delay(3, 0.5, 10.0, jitter=0) == 2.0
    
    def test_capped(self):
        assert backoff_delay(10, 0.5, 3.0, jitter=0) == 3.0
    
    def test_jitter_bounds(self):
        for _ in range(50):
            assert 0.75 <= backoff_delay(1, 1.0, 10.0) <= 1.25


class TestRetry:
    """Test the retry decorator."""
    
    def test_success_first_try(self):
        sleep = MagicMock()
        func = MagicMock(return_value="ok", __name__="fetch")
        
        assert retry(max_attempts=3, sleep=sleep)(func)() == "ok"
        assert func.call_count == 1
        sleep.assert_not_called()
    
    def test_retries_transient_errors(self):
        sleep = MagicMock()
        func = MagicMock(
            side_effect=[RateLimitExceededError(), NetworkTimeoutError(timeout=1.0), "ok"],
            __name__="fetch",
        )
        
        assert retry(max_attempts=3, base_delay=0.1, sleep=sleep)(func)() == "ok"
        assert func.call_count == 3
        assert sleep.call_count == 2
    
    def test_gives_up_after_max_attempts(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=RateLimitExceededError(), __name__="fetch")
        
        with pytest.raises(RateLimitExceededError):
            retry(max_attempts=2, sleep=sleep)(func)()
        assert func.call_count == 2
    
    def test_other_errors_not_retried(self):
        func = MagicMock(side_effect=VenueAPIError("bad request", status_code=400), __name__="fetch")
        
        with pytest.raises(VenueAPIError):
            retry(max_attempts=5, sleep=MagicMock())(func)()
        assert func.call_count == 1
    
    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            retry(max_attempts=0)
    
    def test_from_config(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=NetworkTimeoutError(timeout=1.0), __name__="fetch")
        decorator = retry_from_config(RetryConfig(max_attempts=4, base_delay=0.0), sleep=sleep)
        
        with pytest.raises(NetworkTimeoutError):
            decorator(func)()
        assert func.call_count == 4
