"""
RoomTrace - room polygon extraction from floor-plan vector line-art
"""

__version__ = "0.3.0"
