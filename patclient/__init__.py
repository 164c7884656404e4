"""Winlink client toolkit: form templates, GPSd positions and connection prehooks."""

__version__ = "0.17.0"