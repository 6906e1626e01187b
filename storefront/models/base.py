from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

class StoredModel(BaseModel):
    """A row read back from PostgreSQL, with its timestamps"""
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_row(cls, row):
        """Build from an asyncpg Record; None when the query matched nothing"""
        return cls.model_validate(dict(row)) if row else None
