#!/usr/bin/env python3
"""
otp_cli.py — Command line front-end for the twostep authenticator (multi-user)

Subcommands:
- init   : create credentials for a user, print otpauth URI and scratch codes
- totp   : show the current TOTP code of a user
- verify : check a TOTP code of a user
- uri    : print the otpauth URI of a user
- scratch: list the scratch codes a user has not used yet
- hotp   : compute the HOTP code of a Base32 secret at a counter

Credentials are stored in the SQLite file given by --database
(default: TWOSTEP_DATABASE or database/2fa_database.db).
"""

import argparse
import logging
import sys

from . import otp_core
from .authenticator import Authenticator
from .codec import decode_secret
from .config import AuthenticatorConfig, database_path
from .exceptions import AuthenticatorError, ValidationError

logger = logging.getLogger(__name__)


def _authenticator(args) -> Authenticator:
    # Imported here so "hotp" works without touching the database
    from twostep.database.db_manager import SqliteCredentialRepository

    logger.debug("Using credential database %s", args.database)
    return Authenticator(
        config=AuthenticatorConfig.from_env(),
        credential_repository=SqliteCredentialRepository(args.database),
    )


def _user_secret(auth: Authenticator, user: str) -> str:
    secret = auth.get_user_secret(user)
    if not secret:
        raise AuthenticatorError(f"User '{user}' not found. Run 'init --user {user}' first.")
    return secret


# --- CLI command handlers ---
def cmd_init(args):
    auth = _authenticator(args)
    key = auth.create_credentials_for_user(args.user)
    totp_uri = otp_core.format_otpauth_uri(key.key, args.account or args.user, args.issuer, auth.config)

    print(f"[*] Credentials created for user '{args.user}'")
    print("    Secret:", key.key)
    print("    TOTP URI:", totp_uri)
    print("    Scratch codes:", " ".join(str(c) for c in key.scratch_codes))


def cmd_totp(args):
    auth = _authenticator(args)
    code = auth.get_totp_password(_user_secret(auth, args.user))
    print(f"[user={args.user}] TOTP: {otp_core.format_code(code, auth.config.code_digits)}")


def cmd_verify(args):
    code = args.code.strip()
    # ASCII only: isdigit() also accepts digits like "²" that int() rejects
    if not (code.isascii() and code.isdigit()):
        raise ValidationError("OTP code must contain digits only")
    auth = _authenticator(args)
    ok = auth.authorize(_user_secret(auth, args.user), int(code))
    if ok:
        print(f"[user={args.user}] [+] TOTP code is VALID")
    else:
        print(f"[user={args.user}] [-] TOTP code is INVALID")
    return 0 if ok else 1


def cmd_uri(args):
    auth = _authenticator(args)
    totp_uri = otp_core.format_otpauth_uri(
        _user_secret(auth, args.user), args.account or args.user, args.issuer, auth.config)
    print(f"[user={args.user}] TOTP URI:\n", totp_uri)


def cmd_scratch(args):
    auth = _authenticator(args)
    _user_secret(auth, args.user)
    codes = auth.credential_repository.get_scratch_codes(args.user)
    print(f"[user={args.user}] Unused scratch codes ({len(codes)}):", " ".join(str(c) for c in codes))


def cmd_hotp(args):
    config = AuthenticatorConfig.from_env()
    code = otp_core.compute_code(
        decode_secret(args.secret, config.key_representation), args.counter, config)
    print(f"HOTP(counter={args.counter}): {otp_core.format_code(code, config.code_digits)}")


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Multi-user TOTP authenticator CLI")
    p.add_argument("--database", default=database_path(), help="SQLite credential store")
    p.add_argument("--verbose", action="store_true", help="Verbose (debug) logging")
    sub = p.add_subparsers(dest="cmd")

    # init
    pi = sub.add_parser("init", help="Create credentials for a user")
    pi.add_argument("--user", required=True, help="Username (separate secret per user)")
    pi.add_argument("--account", help="Account label for otpauth URI (default: username)")
    pi.add_argument("--issuer", default="twostep", help="Issuer label for otpauth URI")
    pi.set_defaults(func=cmd_init)

    # totp
    pt = sub.add_parser("totp", help="Show the current TOTP code")
    pt.add_argument("--user", required=True, help="Username")
    pt.set_defaults(func=cmd_totp)

    # verify
    pv = sub.add_parser("verify", help="Verify a TOTP code")
    pv.add_argument("--user", required=True, help="Username")
    pv.add_argument("--code", required=True, help="OTP code to verify")
    pv.set_defaults(func=cmd_verify)

    # uri
    pu = sub.add_parser("uri", help="Print the otpauth URI of a user")
    pu.add_argument("--user", required=True, help="Username")
    pu.add_argument("--account")
    pu.add_argument("--issuer", default="twostep")
    pu.set_defaults(func=cmd_uri)

    # scratch
    ps = sub.add_parser("scratch", help="List the unused scratch codes of a user")
    ps.add_argument("--user", required=True, help="Username")
    ps.set_defaults(func=cmd_scratch)

    # hotp
    ph = sub.add_parser("hotp", help="HOTP code of a secret at a specific counter")
    ph.add_argument("--secret", required=True, help="Encoded secret key")
    ph.add_argument("--counter", type=int, required=True)
    ph.set_defaults(func=cmd_hotp)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="[%(levelname)s] %(name)s: %(message)s")

    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    try:
        return args.func(args) or 0
    except AuthenticatorError as e:
        print(f"[!] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
