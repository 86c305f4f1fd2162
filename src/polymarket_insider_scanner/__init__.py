"""Polymarket Insider Scanner - anomaly detection for prediction market trades."""

__version__ = "0.1.0"
