#!/usr/bin/env python3
"""
Registry -- program and vulnerability registry with a single-admin web interface.

Usage:
  python main.py serve
  python main.py serve --host 127.0.0.1 --port 9000
  python main.py status
  python main.py seed docs/schema_search.json docs/schema_program.json

Environment variables (see core/config.py for the full list):
  CREDENTIAL_FILE       Admin credential file (default: .registry_admin_config)
  REGISTRY_DB_URL       Registry database URL (default: sqlite:///data/registry.db)
  SEED_FILES            JSON list of seed files loaded at startup
  SECURE_COOKIES        Force the Secure cookie attribute (behind a TLS proxy)

The admin password is never set from the command line. Start the server and
open /admin/setup to complete the one-time setup. To reset the admin account,
stop the server and delete the credential file.
"""

import argparse
import sys

from auth.errors import CredentialFileCorrupt, CredentialStoreError
from auth.store import CredentialStore
from core.config import get_settings
from registry.store import RegistryStore


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    """Report whether the admin credential file is present and well-formed."""
    store = CredentialStore(get_settings().credential_file)
    try:
        record = store.load()
    except CredentialFileCorrupt as exc:
        print(f"  [!] Credential file is corrupt: {exc}")
        print("      Delete it and complete setup again at /admin/setup.")
        return 2
    except CredentialStoreError as exc:
        print(f"  [!] Could not read credential file: {exc}")
        return 2

    if record is None:
        print(f"Not configured. Open /admin/setup to create the admin password ({store.path}).")
        return 1
    print(f"Configured ({store.path}).")
    print(f"  created_at: {record.created_at}")
    if record.updated_at:
        print(f"  updated_at: {record.updated_at}")
    return 0


def _cmd_seed(args: argparse.Namespace) -> int:
    registry = RegistryStore(get_settings().registry_db_url)
    try:
        for path in args.files:
            written = registry.load_from_json_file(path)
            print(f"  {path}: {written} row(s) written")
        print(f"{registry.count_programs()} programs in registry.")
    finally:
        registry.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="registry",
        description="Program and vulnerability registry with a single-admin web interface.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8080, help="Port (default: 8080)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    status = sub.add_parser("status", help="Show whether the admin account is configured")
    status.set_defaults(func=_cmd_status)

    seed = sub.add_parser("seed", help="Load registry JSON files into the database")
    seed.add_argument("files", nargs="+", metavar="PATH", help="schema_search.json / schema_program.json files")
    seed.set_defaults(func=_cmd_seed)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
