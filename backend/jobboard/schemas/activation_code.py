from pydantic import BaseModel


class CodeGenerateRequest(BaseModel):
    prefix: str = "CAMPUS"
    count: int = 10
    validity_days: int = 365


class CodeResponse(BaseModel):
    id: int
    code: str
    is_active: bool
    is_used: bool
    validity_days: int
    user_id: int | None
    redeemed_by: str | None = None
    created_at: str
    used_at: str | None = None


class CodeListResponse(BaseModel):
    codes: list[CodeResponse]
    total: int
    page: int
    per_page: int
