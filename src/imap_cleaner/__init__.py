"""IMAP Cleaner - inspect, back up, restore and bulk-delete mailbox messages."""

__version__ = "0.1.0"
