"""Scan error taxonomy."""


class ScanError(Exception):
    pass


class StrategyUnavailable(ScanError):
    """An isolation strategy cannot run (its library is missing or disabled)."""


class DeviceAcquisitionError(ScanError):
    """The capture device could not be opened; fatal to the session."""


__all__ = ["ScanError", "StrategyUnavailable", "DeviceAcquisitionError"]
