from pydantic import BaseModel


class UserCreate(BaseModel):
    username: str
    account: str
    password: str
    icon: int = 1
    is_active: bool = True


class UserUpdate(BaseModel):
    username: str | None = None
    account: str | None = None
    password: str | None = None
    icon: int | None = None
    is_active: bool | None = None


class UserResponse(BaseModel):
    id: int
    username: str
    account: str
    icon: int
    is_active: bool
    created_at: str
    updated_at: str
    membership_type: str = "common_user"
    membership_end_date: str | None = None


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    per_page: int


class MembershipResponse(BaseModel):
    membership_type: str
    is_member: bool
    membership_code: str | None
    membership_start_date: str | None
    membership_end_date: str | None
    remaining_days: int
    category_view_limit: int | None
    quick_view_limit: int


class RedeemRequest(BaseModel):
    code: str


class JobStateRequest(BaseModel):
    state_id: int


class ToggleResponse(BaseModel):
    job_id: int
    value: bool
