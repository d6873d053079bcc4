from pydantic import BaseModel


class JobCreate(BaseModel):
    job_title: str
    company: str
    description: str | None = None
    category_id: list[int] = []
    post_time: str
    deadline: str
    job_location: str
    job_position: str
    job_major: str | None = None
    job_graduation_year: list[str] = []
    job_education_requirement: str
    application_link: str | None = None
    is_pregraduation: bool = False
    is_active: bool = True


class JobUpdate(BaseModel):
    job_title: str | None = None
    company: str | None = None
    description: str | None = None
    category_id: list[int] | None = None
    post_time: str | None = None
    deadline: str | None = None
    job_location: str | None = None
    job_position: str | None = None
    job_major: str | None = None
    job_graduation_year: list[str] | None = None
    job_education_requirement: str | None = None
    application_link: str | None = None
    is_pregraduation: bool | None = None
    is_active: bool | None = None


class JobResponse(BaseModel):
    id: int
    job_title: str
    company: str
    description: str | None
    category_id: list[int]
    post_time: str
    deadline: str
    job_location: str
    job_position: str
    job_major: str | None
    job_graduation_year: list[str]
    job_education_requirement: str
    application_link: str | None
    views_count: int
    favorites_count: int
    applications_count: int
    is_active: bool
    is_pregraduation: bool
    is_24hnew: bool = False
    created_at: str
    updated_at: str
    last_update: str
    is_favorite: bool | None = None
    is_applied: bool | None = None
    job_state: int | None = None


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    per_page: int


class CategoryJobsResponse(JobListResponse):
    category_id: int
    has_more: bool
    limited: bool
    view_limit: int | None = None


class ImportResponse(BaseModel):
    valid_rows: int
    errors: list[str]
    imported: int = 0
    preview: list[dict] = []
