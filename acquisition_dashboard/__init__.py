"""Acquisition pipeline dashboard: observe and drive build -> download -> import."""

__version__ = "0.1.0"
