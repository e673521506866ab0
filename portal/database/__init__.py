"""
Database package initialization.
"""

from portal.database.mongodb import database, MongoDB

__all__ = ['database', 'MongoDB']
