"""Bypass Guard backend package."""
