from pydantic import BaseModel


class CategoryResponse(BaseModel):
    id: int
    category: str
    category_number: int
    active_job_count: int
    is_active: bool


class CategoryUpdate(BaseModel):
    category: str | None = None
    is_active: bool | None = None


class TagCreate(BaseModel):
    tag_name: str
    tag_type: str = "general"
    is_active: bool = True


class TagUpdate(BaseModel):
    tag_name: str | None = None
    tag_type: str | None = None
    is_active: bool | None = None


class TagResponse(BaseModel):
    id: int
    tag_name: str
    tag_type: str
    is_active: bool
    created_at: str


class JobTagUpdate(BaseModel):
    time_tag_id: int | None = None
    action_tag_id: int | None = None


class JobTagResponse(BaseModel):
    job_id: int
    time_tag: TagResponse | None = None
    action_tag: TagResponse | None = None
