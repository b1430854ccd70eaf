"""Adapters that translate native tool output into covdelta models."""
