"""Utility modules for CI context and GitHub integration."""
