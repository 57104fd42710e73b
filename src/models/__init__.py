from src.models.base import Base
from src.models.launch import Launch

__all__ = [
    "Base",
    "Launch",
]
