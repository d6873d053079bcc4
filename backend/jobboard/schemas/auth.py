from pydantic import BaseModel


class UserLoginRequest(BaseModel):
    account: str
    password: str


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    account: str
    password: str
    confirm_password: str | None = None


class LoginResponse(BaseModel):
    token: str
    role: str
    expires_in_seconds: int
    user_id: int | None = None
    admin_id: int | None = None


class ThrottleResponse(BaseModel):
    error: str
    retry_after_seconds: float


class SessionResponse(BaseModel):
    role: str
    id: int
    name: str
    account: str | None = None
    icon: int | None = None
    membership_type: str | None = None
