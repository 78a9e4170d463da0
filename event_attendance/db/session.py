"""
Database Session Management

The engine is created once by init_database() in main.py.
"""
from atams.db import get_db

__all__ = ["get_db"]
