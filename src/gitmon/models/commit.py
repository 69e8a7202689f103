"""Data models for commit information shown in reports."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CommitInfo(BaseModel):
    """A single commit as it appears in a change report."""

    hash: str = Field(..., description="Full commit SHA hash")
    short_hash: str = Field(..., description="Short commit SHA hash (7 chars)")
    author_name: str = Field(..., description="Author name")
    author_email: str = Field("", description="Author email")
    timestamp: datetime = Field(..., description="Commit timestamp")
    summary: str = Field("", description="First line of commit message")
    change_id: Optional[str] = Field(None, description="Gerrit Change-Id trailer, if any")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "hash": "9fceb02d0ae598e95dc970b74767f19372d61af8",
                "short_hash": "9fceb02",
                "author_name": "Ada Lovelace",
                "author_email": "ada@example.com",
                "timestamp": "2024-03-02T08:15:42Z",
                "summary": "Fix authentication bug",
                "change_id": "I8473b95934b5732ac55d26311a706c9c2bde9940",
            }
        }
    )
