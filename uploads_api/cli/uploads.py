"""
CLI commands for upload operators.

Usage:
    python -m uploads_api.cli.uploads init-db
    python -m uploads_api.cli.uploads show 42
    python -m uploads_api.cli.uploads resolve upload://r3AYqESanERjladb4vBB7VsMBm6.png
    python -m uploads_api.cli.uploads retain 42 72
    python -m uploads_api.cli.uploads attach 42 --post-id 1001
"""

import argparse
import sys

from dotenv import load_dotenv

load_dotenv()


def get_db_session():
    """Get a database session."""
    from uploads_api.database import SessionLocal

    return SessionLocal()


def _print_upload(upload) -> None:
    print(f"Upload {upload.id}")
    print(f"  filename:    {upload.original_filename}")
    print(f"  size:        {upload.human_filesize} ({upload.filesize} bytes)")
    if upload.width and upload.height:
        print(f"  dimensions:  {upload.width}x{upload.height}")
    print(f"  sha1:        {upload.sha1}")
    print(f"  url:         {upload.url}")
    print(f"  short url:   {upload.short_url}")
    print(f"  secure:      {upload.secure}")
    print(f"  post:        {upload.access_control_post_id or '-'}")
    print(f"  retain:      {upload.retain_hours or '-'} hours")


def cmd_init_db(args):
    """Create tables (development only; use Alembic in production)."""
    from uploads_api.database import init_db

    init_db()
    print("Tables created.")


def cmd_show(args):
    """Show one upload by id."""
    from uploads_api.repositories.upload_repository import UploadRepository

    db = get_db_session()
    try:
        upload = UploadRepository(db).find_by_id(args.id)
        if upload is None:
            print(f"Upload {args.id} not found", file=sys.stderr)
            sys.exit(1)
        _print_upload(upload)
    finally:
        db.close()


def cmd_resolve(args):
    """Resolve a short URL, store URL or path to its upload."""
    from uploads_api.repositories.upload_repository import UploadRepository

    db = get_db_session()
    try:
        upload = UploadRepository(db).find_by_url(args.url)
        if upload is None:
            print(f"No upload for {args.url}", file=sys.stderr)
            sys.exit(1)
        _print_upload(upload)
    finally:
        db.close()


def cmd_retain(args):
    """Set the retention hint of an upload."""
    from uploads_api.repositories.upload_repository import UploadRepository

    if args.hours < 0:
        print("Hours must be zero or positive", file=sys.stderr)
        sys.exit(1)

    db = get_db_session()
    try:
        repository = UploadRepository(db)
        upload = repository.find_by_id(args.id)
        if upload is None:
            print(f"Upload {args.id} not found", file=sys.stderr)
            sys.exit(1)
        repository.update_retain_hours(upload, args.hours or None)
        print(f"Upload {upload.id}: retain_hours={upload.retain_hours}")
    finally:
        db.close()


def cmd_attach(args):
    """Attach an upload to a post (or detach with --detach)."""
    from uploads_api.repositories.upload_repository import UploadRepository

    db = get_db_session()
    try:
        repository = UploadRepository(db)
        upload = repository.find_by_id(args.id)
        if upload is None:
            print(f"Upload {args.id} not found", file=sys.stderr)
            sys.exit(1)
        repository.set_access_control_post(upload, None if args.detach else args.post_id)
        print(f"Upload {upload.id}: access_control_post_id={upload.access_control_post_id}")
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Uploads management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Look up an upload referenced in a post
  python -m uploads_api.cli.uploads resolve upload://r3AYqESanERjladb4vBB7VsMBm6.png

  # Keep an upload for three days
  python -m uploads_api.cli.uploads retain 42 72
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create tables")
    init_parser.set_defaults(func=cmd_init_db)

    show_parser = subparsers.add_parser("show", help="Show an upload")
    show_parser.add_argument("id", type=int)
    show_parser.set_defaults(func=cmd_show)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve any upload URL")
    resolve_parser.add_argument("url")
    resolve_parser.set_defaults(func=cmd_resolve)

    retain_parser = subparsers.add_parser("retain", help="Set retain_hours (0 clears it)")
    retain_parser.add_argument("id", type=int)
    retain_parser.add_argument("hours", type=int)
    retain_parser.set_defaults(func=cmd_retain)

    attach_parser = subparsers.add_parser("attach", help="Set the access-control post")
    attach_parser.add_argument("id", type=int)
    group = attach_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--post-id", type=int)
    group.add_argument("--detach", action="store_true")
    attach_parser.set_defaults(func=cmd_attach)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
