"""Error taxonomy for the ReelForge pipeline"""

from typing import Any, Dict, Optional


class ReelForgeError(Exception):
    """Base error for ReelForge."""


class InputError(ReelForgeError):
    """Missing or malformed input (script, timestamps, audio, paths)."""


class ConfigError(ReelForgeError):
    """Missing credentials or invalid configuration."""


class NetworkError(ReelForgeError):
    """A synthesis, generation or download call failed or timed out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProcessError(ReelForgeError):
    """An external media tool (ffmpeg) failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class IncompatibleMediaError(ProcessError):
    """Inputs cannot be joined by stream copy (codec or parameter mismatch)."""


class PipelineError(ReelForgeError):
    """Top-level failure of a pipeline run, tagged with the failing stage."""

    def __init__(self, stage: Any, cause: BaseException):
        self.stage = stage
        self.cause = cause
        stage_name = getattr(stage, "value", stage)
        super().__init__(f"Pipeline failed during {stage_name}: {cause}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": str(self.cause) or type(self.cause).__name__,
            "stage": getattr(self.stage, "value", str(self.stage)),
            "cause": type(self.cause).__name__,
        }
