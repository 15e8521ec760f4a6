"""
Shared helpers: dates, ids, retries, atomic JSON writes, locking and logging.
"""
