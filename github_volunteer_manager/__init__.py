"""Synchronizes GitHub items into a local record store and coordinates volunteer claims."""
