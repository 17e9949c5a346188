"""Base model for provider API payloads."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Frozen payload model that accepts both field names and API aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)
