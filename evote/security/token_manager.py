# evote/security/token_manager.py
from datetime import timedelta
from flask_jwt_extended import create_access_token, decode_token
from flask import current_app, Flask


# JWT access tokens for logged-in voters using Flask-JWT-Extended
class TokenManager:
    def __init__(self, app: Flask = None):
        if app:
            self.init_app(app)

    def init_app(self, app: Flask):
        app.config.setdefault("JWT_SECRET_KEY", "change_this_secret_key")
        app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(hours=1))

    def generate_token(self, voter, expires_in: int = None) -> str:
        # Identity is the voter id; email and role ride along for clients.
        expires_delta = timedelta(seconds=expires_in) if expires_in else None
        return create_access_token(
            identity=str(voter.id),
            additional_claims={"email": voter.email, "role": voter.role},
            expires_delta=expires_delta,
        )

    def validate_token(self, token: str):
        # Return the voter id if token is valid, else None.
        try:
            decoded = decode_token(token, allow_expired=False)
            return decoded.get("sub")  # 'sub' is the identity field
        except Exception as e:
            current_app.logger.warning(f"Token validation failed: {str(e)}")
            return None
