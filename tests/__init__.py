"""
Test suite for maestro.

helpers.py provides a scripted model client so the run loop can be driven
round by round without network access.
"""
