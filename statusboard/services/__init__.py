"""
Acquisition, simulation and scheduling services.
"""
