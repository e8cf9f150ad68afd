"""
Data management package.
"""

from data.manager import (
    ObjectManager,
    DataManager2D,
    get_data_manager,
    get_algorithm_manager,
    clear_all,
)

__all__ = [
    'ObjectManager',
    'DataManager2D',
    'get_data_manager',
    'get_algorithm_manager',
    'clear_all',
]
