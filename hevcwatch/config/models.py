from pathlib import Path
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_GLOBAL_ERROR_LOG = Path("/tmp/conversion_errors.log")
DEFAULT_QSV_DEVICE = "/dev/dri/renderD128"

class ConverterConfig(BaseModel):
    """Immutable runtime configuration, built once at startup."""
    model_config = ConfigDict(frozen=True)

    delete_source: bool = True
    max_jobs: int = Field(default=2, ge=1)
    input_dir: Path = Path("/input")
    output_dir: Path = Path("/output")
    loop_wait_seconds: int = Field(default=30, ge=0)
    global_error_log: Path = DEFAULT_GLOBAL_ERROR_LOG
    qsv_device: str = DEFAULT_QSV_DEVICE
    log_path: Optional[Path] = None
    debug: bool = False

    @field_validator("delete_source", "debug", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> Any:
        # Only the literal "true" (any case) enables a flag given as text.
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return v

    @field_validator("qsv_device")
    @classmethod
    def validate_device(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("qsv_device must not be empty")
        return v.strip()

    @property
    def resolved_log_path(self) -> Path:
        return self.log_path if self.log_path else self.output_dir / "conversion.log"
