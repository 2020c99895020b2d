"""
Command line interface for the Sweep Engine.
"""
