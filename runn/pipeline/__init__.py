"""Pipeline manifests and sequential execution."""

from runn.pipeline.catalog import PipelineCatalog
from runn.pipeline.executor import ExecutionOutcome, StepFailed, Success, execute_pipeline
from runn.pipeline.manifest import PipelineManifest, load_pipeline, load_webhook_token_name
from runn.pipeline.secrets import SecretMap, load_secret_map, secret_manifest_name

__all__ = [
    "ExecutionOutcome",
    "PipelineCatalog",
    "PipelineManifest",
    "SecretMap",
    "StepFailed",
    "Success",
    "execute_pipeline",
    "load_pipeline",
    "load_secret_map",
    "load_webhook_token_name",
    "secret_manifest_name",
]
