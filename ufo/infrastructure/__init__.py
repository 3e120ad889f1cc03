"""
UFO Infrastructure Layer.

Event bus, transports and data sources.
"""
