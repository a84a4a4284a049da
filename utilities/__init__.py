"""
Shared configuration and logging setup.
"""
