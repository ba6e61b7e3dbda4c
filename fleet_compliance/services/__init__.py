from .compliance_service import ComplianceService
from .fleet_summary import summarize
from .image_cache import ImageNameCache

__all__ = [
    "ComplianceService",
    "ImageNameCache",
    "summarize",
]
