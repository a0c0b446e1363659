import hmac
from typing import Optional

from fastapi import Header, HTTPException

from storyvault import config

AUTH_HEADER = "X-CUSTOM-AUTH-KEY"


def require_api_key(x_custom_auth_key: Optional[str] = Header(None, alias=AUTH_HEADER)) -> None:
    """Reject the request unless it carries the shared secret.

    An unset secret rejects everything rather than opening the API.
    """
    expected = config.api_secret()
    if not expected or not x_custom_auth_key:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(x_custom_auth_key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized")
