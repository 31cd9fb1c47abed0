"""
FLASK APP ENTRY POINT - OTP BACKEND SERVER
==========================================

Builds the Flask app, enables CORS and registers the /api/v2 routes.

MAIN FEATURES
- Authenticator stored in app.extensions['twostep']
- SQLite credential repository (TWOSTEP_DATABASE, default database/2fa_database.db)
- CORS enabled for frontend integration
- GET / lists the available endpoints
"""
import logging

from flask import Flask, jsonify
from flask_cors import CORS

from twostep.core.authenticator import Authenticator
from twostep.core.config import AuthenticatorConfig, database_path
from twostep.database.db_manager import SqliteCredentialRepository

from .api_v2 import otp_bp_v2

DEFAULT_ISSUER = "MyWebApp"


def create_app(authenticator: Authenticator = None, test_config: dict = None) -> Flask:
    """
    Create the Flask app.

    Without an explicit authenticator, one is built from the TWOSTEP_*
    environment variables with a SQLite repository.
    """
    app = Flask(__name__)
    app.config.update(TWOSTEP_ISSUER=DEFAULT_ISSUER)
    if test_config:
        app.config.update(test_config)

    if authenticator is None:
        authenticator = Authenticator(
            config=AuthenticatorConfig.from_env(),
            credential_repository=SqliteCredentialRepository(
                app.config.get('TWOSTEP_DATABASE') or database_path()),
        )
    app.extensions['twostep'] = authenticator

    # Let a browser frontend on another origin call the API
    CORS(app)

    app.register_blueprint(otp_bp_v2)

    @app.route('/', methods=['GET'])
    def index():
        """List the API endpoints."""
        return jsonify({
            "service": "twostep OTP backend",
            "endpoints": [
                "POST /api/v2/register",
                "GET /api/v2/totp/<username>",
                "POST /api/v2/verify_totp/<username>",
                "GET /api/v2/otpauth_uri/<username>",
                "GET /api/v2/qr_code/<username>",
            ]
        })

    return app


# Run the development server when executed directly
if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True, host='0.0.0.0', port=5000)
