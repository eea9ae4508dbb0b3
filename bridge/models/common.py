from pydantic import BaseModel, ConfigDict


class CamelModel(BaseModel):
    """Accepts both field names and their camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)
