"""
Export Module
Backend-agnostic export orchestration.
"""

from .coordinator import (
    ExportCoordinator, ExportBackend, ExportContext, ExportOptions, ExportResult, ExportWarning,
    CancellationToken,
)

__all__ = [
    'ExportCoordinator', 'ExportBackend', 'ExportContext', 'ExportOptions', 'ExportResult',
    'ExportWarning', 'CancellationToken',
]
