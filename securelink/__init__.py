"""Secure transport app for the medibook backend.

This package contains the Diffie-Hellman key agreement, the envelope
cipher, the server-side session store, the transport middleware and the
client dispatcher used to call policy-marked endpoints.
"""
