from fastapi import HTTPException
from typing import Optional


class GateRejected(HTTPException):
    """Request gate rejection carrying the page the frontend should redirect to."""

    def __init__(self, status_code: int, detail: str, redirect: Optional[str] = None):
        super().__init__(status_code=status_code, detail=detail)
        self.redirect = redirect


class UsageLimitExceeded(HTTPException):
    def __init__(self, counter: str, used: int, limit: int):
        self.counter = counter
        self.used = used
        self.limit = limit
        super().__init__(
            status_code=403,
            detail=f"Plan limit reached for {counter} ({used}/{limit})",
        )
