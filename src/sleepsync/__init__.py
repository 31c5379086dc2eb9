"""sleepsync — sleep/wake detection, baseline calibration and sleep scoring."""

__version__ = "0.1.0"
