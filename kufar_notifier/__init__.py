"""
Kufar Listing Notifier

Re-scrapes saved Kufar.by search filters on a schedule and delivers every
listing a subscriber has not seen yet to their Telegram chat.
"""

__version__ = "0.1.0"
__author__ = "Kufar Notifier Team"
