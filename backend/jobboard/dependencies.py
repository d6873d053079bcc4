from fastapi import Header, HTTPException

from jobboard.services.auth_service import ROLE_ADMIN, ROLE_USER, auth_service


def _session_from_header(authorization: str | None) -> tuple[str, dict] | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:]
    session = auth_service.validate_token(token)
    if session is None:
        return None
    return token, session


async def require_session(authorization: str | None = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    found = _session_from_header(authorization)
    if found is None:
        raise HTTPException(status_code=401, detail="Not logged in or session expired")
    token, session = found
    return {**session, "token": token}


async def require_user(authorization: str | None = Header(None)) -> int:
    session = await require_session(authorization)
    if session["role"] != ROLE_USER:
        raise HTTPException(status_code=403, detail="User account required")
    return session["subject_id"]


async def require_admin(authorization: str | None = Header(None)) -> int:
    session = await require_session(authorization)
    if session["role"] != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin account required")
    return session["subject_id"]


async def optional_user(authorization: str | None = Header(None)) -> int | None:
    found = _session_from_header(authorization)
    if found is None or found[1]["role"] != ROLE_USER:
        return None
    return found[1]["subject_id"]
