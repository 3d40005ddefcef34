"""Remix engine: copies a GitHub repository tree over another one."""
