"""
Stateless signed session tokens.

Nothing is stored server side: a token is valid while its signature checks out
and it has not expired. Logout only discards the token on the client.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from jose import JWTError, jwt

from storegate.config import Settings
from storegate.utils.time import utcnow


class TokenIssuer:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = expires_delta
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], datetime] = utcnow) -> "TokenIssuer":
        return cls(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            expires_delta=timedelta(minutes=settings.jwt_access_token_expire_minutes),
            clock=clock,
        )

    @property
    def max_age(self) -> int:
        return int(self.expires_delta.total_seconds())

    def issue(self, claims: dict[str, Any]) -> str:
        """Create a signed token carrying ``claims``, issued now, expiring after the lifetime."""
        now = self.clock()
        to_encode = claims.copy()
        to_encode.update({
            "iat": int(now.timestamp()),
            "exp": int((now + self.expires_delta).timestamp()),
        })
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Optional[dict[str, Any]]:
        """Claims of a valid token, None for anything else."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        # Expiry against our own clock
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            return None
        if datetime.fromtimestamp(exp, tz=timezone.utc) <= self.clock():
            return None
        return payload
