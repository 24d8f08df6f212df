"""
Live Alert

Listens for YouTube WebSub push notifications, picks out videos whose
description carries the ``#live`` tag, and announces them to a set of
Telegram chats.
"""

__version__ = "0.1.0"
__author__ = "Live Alert Team"
