"""
activesql - active-record and mapped-object data access over parameterized SQL.
"""

__version__ = "0.1.0"

from activesql.core import *  # noqa
