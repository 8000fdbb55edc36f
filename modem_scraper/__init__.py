"""Scrape channel statistics from an Arris S33 cable modem over HNAP."""

__version__ = "0.1.0"
