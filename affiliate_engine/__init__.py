"""Affiliate attribution and commission engine."""
