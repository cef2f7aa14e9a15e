"""Larder — grocery sales analytics daemon with a monthly summary refresher."""

__version__ = "0.1.0"
