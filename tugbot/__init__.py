"""
Tugbot
======

Agent that re-runs exited test containers from their original images.
"""

__version__ = "0.1.0"
