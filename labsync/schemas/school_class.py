from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    class_code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    instructor_id: int | None = None


class ClassRead(BaseModel):
    id: int
    class_code: str
    name: str
    description: str | None = None
    instructor_id: int | None = None

    class Config:
        from_attributes = True


class ClassStudentAdd(BaseModel):
    user_id: int
