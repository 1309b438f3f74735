"""Exceptions raised by the watcher."""


class WatcherError(Exception):
    """Base exception for trc20watch."""
    pass


class ConfigError(WatcherError):
    """Raised when the watcher configuration is unusable."""
    pass


class UpstreamOrderError(WatcherError):
    """Raised when the transfer feed is not sorted newest-first.

    Pagination stops at the first already-seen transfer, which is only safe
    when every page is in descending block time order.
    """

    def __init__(self, address: str, previous_ts: int, current_ts: int):
        self.address = address
        self.previous_ts = previous_ts
        self.current_ts = current_ts
        super().__init__(
            f"Transfer feed for {address} is out of order: "
            f"block_ts {current_ts} follows {previous_ts}"
        )
