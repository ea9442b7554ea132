"""
Per-IP request throttling using slowapi.

This sits in front of the per-subject limits enforced by the
verification flow and only guards against raw request floods.

Three tiers:
  • strict  – 5/min  (endpoints that send an email or SMS)
  • auth    – 10/min (code presentation and sign-in)
  • default – 60/min (everything else)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])

# Named rate strings for use in @limiter.limit() decorators
STRICT = "5/minute"
AUTH = "10/minute"
