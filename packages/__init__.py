"""Shared ADSC packages.

This namespace exposes helper modules that can be imported by any
application in the repository. Individual packages should keep their
public API small and well-documented to encourage reuse.
"""
