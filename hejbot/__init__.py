"""
HejBot
======

Chat bot for Twoblade: message statistics, admin commands and AI answers.
"""

__version__ = "1.0.0"
