"""Request bodies accepted by the mutation endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class RenameRequest(BaseModel):
    """Body of ``POST /api/rename``."""

    model_config = ConfigDict(strict=True, populate_by_name=True)

    src: str = ""
    dst: str = ""
    is_prefix: bool = Field(default=False, alias="isPrefix")


class DeletePrefixRequest(BaseModel):
    """Body of ``POST /api/delete-prefix``."""

    model_config = ConfigDict(strict=True)

    prefix: str = ""
