"""
Status board: live infrastructure status dashboard backed by SSH metrics
from a remote host, with a simulated fallback.
"""

__version__ = "1.0.0"
