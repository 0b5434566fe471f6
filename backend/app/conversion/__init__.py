from .models import ImageMetadata, OperationKind, OperationRequest, SupportedFormats
from .operations import Operation, get_operation

__all__ = ["ImageMetadata", "Operation", "OperationKind", "OperationRequest", "SupportedFormats", "get_operation"]
