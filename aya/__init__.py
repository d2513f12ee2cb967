"""aya: conversational agent runtime for agentcoin.fun chat channels."""

__version__ = "0.1.0"
__logo__ = "🐾"
