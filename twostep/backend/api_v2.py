"""
OTP BACKEND API ROUTES - VERSION 2 (MULTI-USER)

REST endpoints over the Authenticator. Every user-specific endpoint takes the
username in the URL.

Examples:
  curl -X POST http://localhost:5000/api/v2/register -H "Content-Type: application/json" -d '{"username": "alice"}'
  curl http://localhost:5000/api/v2/totp/alice
  curl -X POST http://localhost:5000/api/v2/verify_totp/alice -H "Content-Type: application/json" -d '{"code": "123456"}'
"""

import base64
import io
import logging

import qrcode
from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import BadRequest, Conflict, HTTPException, NotFound

from twostep.core import otp_core
from twostep.core.authenticator import current_time_millis
from twostep.core.exceptions import (
    AuthenticatorError,
    DecodingError,
    UnsupportedOperationError,
    ValidationError,
)

logger = logging.getLogger(__name__)

otp_bp_v2 = Blueprint('otp_v2', __name__, url_prefix='/api/v2')


def _authenticator():
    return current_app.extensions['twostep']


def _issuer():
    return request.args.get('issuer') or current_app.config['TWOSTEP_ISSUER']


def _require_secret(user):
    """Encoded secret of a user, 404 if the user has no credentials."""
    secret = _authenticator().get_user_secret(user)
    if not secret:
        raise NotFound(f"User '{user}' not found. Please register first.")
    return secret


def _parse_code(data):
    """Read the "code" field of the JSON body as an int (leading zeros allowed)."""
    if not data or 'code' not in data:
        raise BadRequest("OTP code is required in JSON body")
    code = str(data['code']).strip()
    # ASCII only: isdigit() also accepts digits like "²" that int() rejects
    if not (code.isascii() and code.isdigit()):
        raise BadRequest("OTP code must contain digits only")
    return int(code)


# --- Error handlers -----------------------------------------------------------
@otp_bp_v2.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({"error": error.description}), error.code


@otp_bp_v2.errorhandler(AuthenticatorError)
def handle_authenticator_error(error):
    if isinstance(error, (ValidationError, DecodingError)):
        return jsonify({"error": str(error)}), 400
    if isinstance(error, UnsupportedOperationError):
        return jsonify({"error": "No credential repository configured"}), 501
    # OperationError / ConfigurationError: details stay in the log
    logger.error("Authenticator failure on %s: %s", request.path, error)
    return jsonify({"error": "The operation cannot be performed now."}), 500


# --- Endpoints ----------------------------------------------------------------
@otp_bp_v2.route('/register', methods=['POST'])
def register_user():
    """
    Create credentials for a new user.

    Body: {"username": "alice"}
    Returns the secret to register on the device, the verification code at
    time 0, the scratch codes and the otpauth URI.
    """
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    if not username:
        raise BadRequest("Username is required")

    auth = _authenticator()
    key = auth.register_user(username)
    if key is None:
        raise Conflict("User already exists")

    totp_uri = otp_core.format_otpauth_uri(key.key, username, _issuer(), auth.config)

    return jsonify({
        "message": "User created successfully",
        "user": username,
        "otp_secret": key.key,
        "verification_code": otp_core.format_code(key.verification_code, auth.config.code_digits),
        "scratch_codes": list(key.scratch_codes),
        "otp_uri": totp_uri,
    }), 201


@otp_bp_v2.route('/totp/<string:user>', methods=['GET'])
def get_totp_for_user(user):
    """
    Current TOTP code of a user.
    Endpoint: GET /api/v2/totp/<username>
    """
    secret = _require_secret(user)
    auth = _authenticator()

    now = current_time_millis()
    code = auth.get_totp_password(secret, now)
    step = auth.config.time_step_size_in_millis
    remaining = (step - now % step) // 1000

    return jsonify({
        "code": otp_core.format_code(code, auth.config.code_digits),
        "remaining": remaining,
        "period": auth.config.time_step_size_in_seconds,
        "user": user
    })


@otp_bp_v2.route('/verify_totp/<string:user>', methods=['POST'])
def verify_totp_for_user(user):
    """
    Verify a TOTP code, or an unused scratch code, for a user.
    Endpoint: POST /api/v2/verify_totp/<username>
    Body: { "code": "123456" }
    """
    code = _parse_code(request.get_json(silent=True))
    secret = _require_secret(user)
    auth = _authenticator()

    if auth.authorize(secret, code):
        return jsonify({"valid": True, "scratch": False, "user": user})

    repository = auth.credential_repository
    if otp_core.validate_scratch_code(code) and hasattr(repository, 'use_scratch_code'):
        if repository.use_scratch_code(user, code):
            return jsonify({"valid": True, "scratch": True, "user": user})

    logger.info("Rejected OTP code for user '%s'", user)
    return jsonify({"valid": False, "user": user})


@otp_bp_v2.route('/otpauth_uri/<string:user>', methods=['GET'])
def get_otpauth_uri_for_user(user):
    """
    otpauth URI of a user, to build a QR code client-side.
    Endpoint: GET /api/v2/otpauth_uri/<username>?issuer=MyWebApp
    """
    secret = _require_secret(user)
    totp_uri = otp_core.format_otpauth_uri(secret, user, _issuer(), _authenticator().config)
    return jsonify({"totp_uri": totp_uri, "user": user})


@otp_bp_v2.route('/qr_code/<string:user>', methods=['GET'])
def get_qr_code_for_user(user):
    """
    QR code image (PNG data URI) of a user's otpauth URI.
    Endpoint: GET /api/v2/qr_code/<username>
    """
    secret = _require_secret(user)
    totp_uri = otp_core.format_otpauth_uri(secret, user, _issuer(), _authenticator().config)

    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(totp_uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    img_str = base64.b64encode(buffer.getvalue()).decode()

    return jsonify({
        "qr_code": f"data:image/png;base64,{img_str}",
        "user": user
    })
