"""FanFik keep-alive — periodic probing that keeps a hosted app from idling."""

__version__ = "1.0.0"
