"""Base model configuration for declarations and configuration."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(frozen=True)
