from app.schemas.my_base_model import CustomBaseModel


class HealthCheck(CustomBaseModel):
    """Response model to validate and return when performing a health check."""

    status: str = "oke"
