"""StitchDesk - order and quote lifecycle core for a digitizing / embroidery portal."""

__version__ = "0.1.0"
