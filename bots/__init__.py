"""Discord runtime pieces for the swap bot.

`swapbot.py` wires these helpers into slash commands; they live here so the
message and configuration handling can be tested without a Discord client.
"""

__all__ = ["config", "logging_utils", "messages"]
