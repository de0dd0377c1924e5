"""RouterCAM: vector and mesh designs to 3-axis router G-code."""

__version__ = "0.1.0"
