"""
matrix-user-manager - interactive user administration for Dockerized Synapse
"""

__version__ = "0.1.0"

from .core import ManagerError, UserManager

__all__ = ["UserManager", "ManagerError"]
