"""
shiftplanner - conflict detection and hour aggregation for workforce plannings.
"""

__version__ = "0.1.0"
