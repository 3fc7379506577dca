from .ble_scanner import GoveeScanner, RadioState
from .govee_decoder import DecodeError, InsufficientDataError, decode

__all__ = ["DecodeError", "GoveeScanner", "InsufficientDataError", "RadioState", "decode"]
