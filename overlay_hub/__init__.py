"""Real-time relay of Twitch events and chat to local overlay clients."""

__version__ = "1.0.0"
