"""
Tamino command line interface.
"""
