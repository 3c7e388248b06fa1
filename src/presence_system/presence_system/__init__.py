"""Presence System package.

Organized by feature modules (tokens, presence, outbox, sync, roster, ...)
with a thin Flask controller layer over service/repository layers.
"""
