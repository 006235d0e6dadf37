#!/usr/bin/env python3
"""Admin maintenance CLI for the feedback portal.

Runs with the Supabase service-role key, so it sees every row regardless of
row-level policies. Run from the project root: ``python -m scripts.admin_cli``.
"""

from __future__ import annotations

import argparse
import json

from config import Config
from services.analytics import analyze_feedback, sentiment_stats
from services.supabase_backend import SupabaseBackend


def make_backend():
    return SupabaseBackend(Config.SUPABASE_URL, Config.SUPABASE_ANON_KEY, Config.SUPABASE_SERVICE_ROLE_KEY)


def promote(backend, email: str, name: str | None = None):
    row = backend.find_user('email', email.strip().lower())
    if not row:
        print("user_not_found")
        return
    changes = {'is_admin': True}
    if name:
        changes['name'] = name
    backend.update_user(row['id'], changes)
    print(f"promoted={row['id']}")


def print_stats(backend):
    print(json.dumps(sentiment_stats(backend.list_feedback()), indent=2))


def print_analytics(backend):
    print(json.dumps(analyze_feedback(backend.list_feedback()), indent=2, ensure_ascii=False))


def main(argv=None, backend=None):
    parser = argparse.ArgumentParser(description='Student feedback portal admin utility')
    sub = parser.add_subparsers(dest='cmd', required=True)

    p1 = sub.add_parser('promote', help='grant the admin flag to an existing profile')
    p1.add_argument('--email', required=True)
    p1.add_argument('--name')

    sub.add_parser('stats', help='sentiment counts over all feedback')
    sub.add_parser('analytics', help='keyword and faculty issue analytics as JSON')

    args = parser.parse_args(argv)
    backend = backend or make_backend()

    if args.cmd == 'promote':
        promote(backend, args.email, args.name)
    elif args.cmd == 'stats':
        print_stats(backend)
    elif args.cmd == 'analytics':
        print_analytics(backend)


if __name__ == '__main__':
    main()
