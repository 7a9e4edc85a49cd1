"""Adapters layer - Infrastructure implementations for assignment resolution.

This layer contains concrete implementations of the ports defined in the domain layer:
- GraphConfigurationAPI: Microsoft Graph implementation of IConfigurationAPI
- GraphGroupResolver: Microsoft Graph implementation of IGroupResolver
- CsvReportExporter / ExcelReportExporter / JsonReportExporter: IReportExporter
- TargetNormalizer: maps both assignment wire schemas to AssignmentTarget
"""

from .target_normalizer import TargetNormalizer
from .graph_api_adapter import GraphConfigurationAPI, GraphGroupResolver
from .report_exporter import (
    EXPORTERS,
    CsvReportExporter,
    ExcelReportExporter,
    JsonReportExporter,
    exporter_for,
)

__all__ = [
    # Graph adapters
    "GraphConfigurationAPI",
    "GraphGroupResolver",
    # Exporters
    "EXPORTERS",
    "CsvReportExporter",
    "ExcelReportExporter",
    "JsonReportExporter",
    "exporter_for",
    # Normalization
    "TargetNormalizer",
]
