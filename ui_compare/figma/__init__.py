"""Figma REST access: client, shared rate limiter, response cache and 429 retry."""
