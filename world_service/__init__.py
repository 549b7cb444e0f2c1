"""
GangGPT World Service
Territory control, world events, economic state and market simulation
"""

__version__ = "1.0.0"
