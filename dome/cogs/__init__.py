"""Slash-command cogs for the dome bot."""
