"""trc20watch - incoming TRC20 deposit watcher.

Polls Tronscan for inbound token transfers to a set of tracked TRON
addresses, records each confirmed transfer once and announces it on Telegram.
"""

__version__ = "1.0.0"
