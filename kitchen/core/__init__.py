"""
Core infrastructure: storage, locks, errors and logging.
"""
