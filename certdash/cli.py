"""
Operator command line for the certificate dashboard.

Usage:
    python -m certdash login --email admin@example.com --role admin
    python -m certdash courses --page 2 --size 20 --search python
    python -m certdash resend learner@example.com COURSE_ID
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .app import Dashboard
from .config import Settings, configure_logging
from .errors import AppError, recovery_hint, user_message
from .models import LearnerSummary, Notification, UserRole
from .stores import ResourceStore


def run_now(delay: float, fn: Callable[[], None]) -> None:
    """Scheduler for one-shot commands: the process exits before a timer would fire."""
    fn()


def print_notification(notification: Notification) -> None:
    print(f"[{notification.level.value}] {notification.title}: {notification.message}", file=sys.stderr)


def describe(item: Any) -> str:
    """One line for a listed item."""
    if hasattr(item, 'learner_info'):
        courses = ', '.join(f"{c.course_name} ({c.certificate_status})" for c in item.courses)
        return f"{item.learner_info.name} <{item.email}> {item.learner_info.organization_website} [{courses}]"
    if hasattr(item, 'course_id') and hasattr(item, 'certificate_template_html'):
        return f"{item.course_id}  {item.name}"
    if hasattr(item, 'website'):
        return f"{item.website}  {item.name or ''}  {item.sop_email or ''}"
    if hasattr(item, 'activity_type'):
        return f"{item.timestamp:%Y-%m-%d %H:%M}  {item.activity_type}  {item.status}  {item.actor}  {item.details}"
    return str(item)


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='certdash',
        description='Manage courses, organizations, learners and certificates through the gateway'
    )
    parser.add_argument('--log-level', default=None, help='Logging level (default: CERTDASH_LOG_LEVEL or INFO)')
    commands = parser.add_subparsers(dest='command', required=True)

    login = commands.add_parser('login', help='Log in and cache the session')
    login.add_argument('--email', required=True)
    login.add_argument('--password', help='Prompted for when omitted')
    login.add_argument('--role', choices=[r.value for r in UserRole], default=UserRole.ADMIN.value)

    commands.add_parser('logout', help='Clear the cached session')
    commands.add_parser('whoami', help='Show the cached session')

    for name in ('courses', 'organizations', 'learners', 'sop-learners', 'logs'):
        listing = commands.add_parser(name, help=f'List {name.replace("-", " ")}')
        listing.add_argument('--page', type=int, default=1)
        listing.add_argument('--size', type=int, default=None, help='Items per page')
        listing.add_argument('--search', default='')
        if name in ('learners', 'logs'):
            listing.add_argument('--organization', help='Filter by organization website')
        if name == 'logs':
            listing.add_argument('--activity-type')
            listing.add_argument('--status')

    commands.add_parser('stats', help='Show statistics for the current role')

    resend = commands.add_parser('resend', help='Resend a certificate')
    resend.add_argument('email')
    resend.add_argument('course_id')

    download = commands.add_parser('download', help='Download a certificate PDF')
    download.add_argument('email')
    download.add_argument('course_id')
    download.add_argument('--output', type=Path, default=Path('.'), help='Directory to save into')

    return parser


def pick_store(dashboard: Dashboard, args: argparse.Namespace) -> ResourceStore:
    if args.command == 'courses':
        return dashboard.courses
    if args.command == 'organizations':
        return dashboard.organizations
    if args.command == 'learners':
        store = dashboard.learners
        store.set_filters(organization_website=args.organization)
        return store
    if args.command == 'sop-learners':
        return dashboard.sop_learners
    store = dashboard.log_store()
    if dashboard.role == UserRole.ADMIN:
        store.set_filters(
            organization_website=args.organization,
            activity_type=args.activity_type,
            status=args.status
        )
    return store


async def list_command(dashboard: Dashboard, args: argparse.Namespace) -> int:
    store = pick_store(dashboard, args)
    store.set_search_term(args.search)
    await store.fetch(args.page, args.search, args.size)
    if store.state.error:
        return 1

    for item in store.items:
        print(describe(item))
    if args.command == 'learners' and store.state.summary:
        summary = LearnerSummary(**store.state.summary)
        print(f"-- {summary.total_learners} learners, {summary.total_enrollments} enrollments, "
              f"{summary.completion_rate:.0f}% completion")
    pagination = store.state.pagination
    more = ', more available' if pagination.has_more else ''
    print(f"-- page {pagination.current_page}, {len(store.items)} of {pagination.total_items}{more}")
    return 0


def stats_command(dashboard: Dashboard) -> int:
    if dashboard.role == UserRole.SOP:
        sections: Dict[str, Any] = {'Learners': dashboard.sop_api.get_learner_statistics()}
    else:
        sections = {
            'Courses': dashboard.admin_api.get_course_statistics(),
            'Organizations': dashboard.admin_api.get_organization_statistics(),
            'Learners': dashboard.admin_api.get_learner_statistics(),
        }
    for title, stats in sections.items():
        print(title)
        for key, value in stats.model_dump().items():
            if value is not None:
                print(f"  {key.replace('_', ' ')}: {value}")
    return 0


async def run(args: argparse.Namespace, dashboard: Dashboard) -> int:
    if args.command == 'login':
        password = args.password or getpass.getpass('Password: ')
        user = dashboard.auth.login(args.email, password, UserRole(args.role))
        print(f"Logged in as {user.name} <{user.email}> ({user.role.value})")
        return 0

    if args.command == 'logout':
        dashboard.auth.logout()
        print("Logged out")
        return 0

    user = dashboard.auth.check_auth()
    if not user:
        print("Not logged in. Run `certdash login` first.", file=sys.stderr)
        return 1

    if args.command == 'whoami':
        expiry = f", expires {user.token_expiry:%Y-%m-%d %H:%M %Z}" if user.token_expiry else ''
        org = f", organization {user.organization_website}" if user.organization_website else ''
        print(f"{user.name} <{user.email}> ({user.role.value}{org}{expiry})")
        return 0

    if args.command == 'stats':
        return stats_command(dashboard)

    if args.command == 'resend':
        result = await dashboard.resend_manager().resend(args.email, args.course_id)
        return 0 if result and result.success else 1

    if args.command == 'download':
        path = await dashboard.download_manager().download(args.email, args.course_id, args.output)
        if path:
            print(path)
        return 0 if path else 1

    return await list_command(dashboard, args)


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = create_argument_parser().parse_args(argv)
    settings = settings or Settings.from_env()
    configure_logging(args.log_level or settings.log_level)

    dashboard = Dashboard.from_settings(settings, scheduler=run_now)
    dashboard.notifications.subscribe(print_notification)

    try:
        return asyncio.run(run(args, dashboard))
    except AppError as e:
        print(f"Error: {user_message(e)} ({recovery_hint(e)})", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
