"""
IP-based rate limiting for public endpoints.
"""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address

# Listing reads are cheap; triggers start browser work
RATE_LIMIT_JOBS = os.getenv("RATE_LIMIT_JOBS", "120/minute")
RATE_LIMIT_TRIGGER = os.getenv("RATE_LIMIT_TRIGGER", "10/minute")

limiter = Limiter(key_func=get_remote_address)
