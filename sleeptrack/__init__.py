"""Sleep tracking storage and statistics core"""

__version__ = "0.1.0"
