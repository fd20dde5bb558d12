"""StateFlow ビヘイビアパイプライン.

既定の順序:
    logging → validation → handler → receptors → persistence → mirror
"""

from stateflow.pipeline.base import (
    Behavior,
    DispatchContext,
    NextStage,
    Pipeline,
    PipelineBuilder,
)
from stateflow.pipeline.handler import PrimaryHandlerBehavior
from stateflow.pipeline.logging_behavior import LoggingBehavior
from stateflow.pipeline.mirror import MirrorBehavior
from stateflow.pipeline.persistence import PersistenceBehavior
from stateflow.pipeline.receptors import ReceptorBehavior
from stateflow.pipeline.validation import ValidationBehavior, Validator, ValidatorRegistry


__all__ = [
    "Behavior",
    "DispatchContext",
    "LoggingBehavior",
    "MirrorBehavior",
    "NextStage",
    "PersistenceBehavior",
    "Pipeline",
    "PipelineBuilder",
    "PrimaryHandlerBehavior",
    "ReceptorBehavior",
    "ValidationBehavior",
    "Validator",
    "ValidatorRegistry",
]
