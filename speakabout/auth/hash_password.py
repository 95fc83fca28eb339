"""
Admin credential CLI.

Produces the ADMIN_PASSWORD_HASH value for a new operator password.

Usage:
  speakabout-hash-password                 Prompt for the password twice
  speakabout-hash-password 'N3w-Passw0rd'  Hash the given password
"""

import argparse
import getpass
import sys
from typing import List, Optional

from speakabout.core.security import hash_password, validate_password


def read_password() -> Optional[str]:
    password = getpass.getpass("New admin password: ")
    if getpass.getpass("Repeat password: ") != password:
        return None
    return password


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="speakabout-hash-password",
        description="Hash an admin password for the ADMIN_PASSWORD_HASH setting.",
    )
    parser.add_argument("password", nargs="?", help="Password to hash (prompted when omitted)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    password = args.password if args.password is not None else read_password()
    if password is None:
        print("Passwords do not match", file=sys.stderr)
        return 1

    result = validate_password(password)
    if not result.valid:
        print(result.message, file=sys.stderr)
        return 1

    print(hash_password(password))
    return 0


if __name__ == "__main__":
    sys.exit(main())
