"""Modem driver abstractions."""

from .base import ModemDriver
from .s33 import S33Driver

__all__ = ["ModemDriver", "S33Driver"]
