"""letterbox: archive a Buttondown newsletter into SQLite and publish it."""

__version__ = "0.1.0"
