"""Diagnostic snapshot regression harness."""
