from .loader import load_config, load_config_with_overrides
from .schema import (
    AnnotationConfig,
    ClassifierConfig,
    DataSourceVersions,
    HomologyConfig,
    PipelineConfig,
)

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "PipelineConfig",
    "DataSourceVersions",
    "ClassifierConfig",
    "HomologyConfig",
    "AnnotationConfig",
]
