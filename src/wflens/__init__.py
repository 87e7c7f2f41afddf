"""wflens: workflow history as an event tree and a timeline."""

__version__ = "0.1.0"
