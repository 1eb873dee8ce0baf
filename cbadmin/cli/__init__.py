"""
Command-line interface for CBADMIN.
"""
