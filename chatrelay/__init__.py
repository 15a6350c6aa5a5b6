"""
chatrelay: relay chat messages to an LLM provider and keep the history.
"""

__version__ = "1.0.0"
