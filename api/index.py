"""
Vercel serverless entry point for the Student Feedback Portal.

The serverless deployment runs the same Flask application as the long-running
gunicorn server; there is no separate handler implementation. Supabase holds
all state, so nothing needs to survive between invocations.

The function filesystem is read-only except for /tmp, so the rotating log file
is redirected there unless LOG_DIR is set explicitly. Session cookies must be
secure in this deployment (SESSION_COOKIE_SECURE defaults to on).
"""

import sys
import os

# Make the project root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault('LOG_DIR', '/tmp/logs')

# Vercel's @vercel/python runtime looks for a WSGI callable named `app`
from app import app  # noqa: E402,F401
