"""Authoritative server for four-player team dominoes with adaptive AI seats."""

__version__ = '1.0.0'
