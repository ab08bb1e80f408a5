"""HN Synth — streams fabricated Hacker News stories and comment trees."""

__version__ = "0.1.0"
