"""
Kitchen inventory service: ingredient stock, recipes, meal preparation,
budget tracking and stock alerts.
"""

__version__ = "1.0.0"
