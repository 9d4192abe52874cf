from pydantic import BaseModel, ConfigDict


class CommentCreate(BaseModel):
    comment: str

    model_config = ConfigDict(strict=True)
