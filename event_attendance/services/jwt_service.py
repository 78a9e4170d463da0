"""
JWT Service for QR token generation and decoding
"""
import jwt
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

from event_attendance.core.config import settings
from event_attendance.schemas.attendance import QrToken
from atams.exceptions import BadRequestException

TOKEN_ISSUER = "event-attendance"
AUDIENCE_PREFIX = "event:"


class JwtService:
    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        validity_seconds: Optional[int] = None,
        max_usage: Optional[int] = None
    ) -> None:
        self.secret = secret or settings.QR_JWT_SECRET
        self.algorithm = algorithm or settings.QR_JWT_ALG
        self.validity_seconds = validity_seconds or settings.QR_TOKEN_VALIDITY_SECONDS
        self.max_usage = max_usage or settings.QR_TOKEN_MAX_USAGE

    def generate_qr_token(self, event_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Generate a signed QR token for an event

        Returns:
            dict: {token: str, token_id: str, expires_in: int}
        """
        now = now or datetime.now(timezone.utc)
        exp = now + timedelta(seconds=self.validity_seconds)

        # Unique token id, tracked for single-use enforcement
        jti = str(uuid.uuid4())

        payload = {
            "iss": TOKEN_ISSUER,
            "aud": f"{AUDIENCE_PREFIX}{event_id}",
            "ev_id": event_id,
            "jti": jti,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "max_usage": self.max_usage
        }

        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)

        return {
            "token": token,
            "token_id": jti,
            "expires_in": self.validity_seconds
        }

    def decode_payload(self, token: str) -> Dict[str, Any]:
        """
        Verify signature and structure of a QR token

        Expiry is NOT checked here: the attendance validator judges it from
        the issuance time so that expired scans are recorded as rejections.

        Raises:
            BadRequestException: If token is malformed or its signature is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False, "verify_aud": False}  # We'll verify aud manually
            )
        except jwt.InvalidTokenError as e:
            raise BadRequestException(f"Invalid token: {str(e)}")

        # Validate required fields
        required_fields = ["iss", "aud", "ev_id", "jti", "iat"]
        for field in required_fields:
            if field not in payload:
                raise BadRequestException(f"Missing required field: {field}")

        # Validate issuer
        if payload["iss"] != TOKEN_ISSUER:
            raise BadRequestException("Invalid token issuer")

        # Validate audience format
        if not str(payload["aud"]).startswith(AUDIENCE_PREFIX):
            raise BadRequestException("Invalid token audience")

        # Extract event_id from audience
        expected_event_id = payload["aud"][len(AUDIENCE_PREFIX):]
        if expected_event_id != payload["ev_id"]:
            raise BadRequestException("Event ID mismatch in token")

        return payload

    def decode_qr_token(self, token: str, usage_count: int = 0) -> QrToken:
        """
        Decode a QR token into the form the attendance validator judges

        Args:
            token: JWT string from the QR code
            usage_count: How many times the token id has already been used
        """
        payload = self.decode_payload(token)
        return QrToken(
            token_id=payload["jti"],
            event_id=payload["ev_id"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            usage_count=usage_count,
            max_usage=payload.get("max_usage", self.max_usage)
        )

