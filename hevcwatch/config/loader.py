import os
from typing import Dict, Mapping, Optional
from .models import ConverterConfig

# Environment variable -> ConverterConfig field
ENV_FIELDS: Dict[str, str] = {
    "DELETE_SOURCE": "delete_source",
    "MAX_JOBS": "max_jobs",
    "INPUT_DIR": "input_dir",
    "OUTPUT_DIR": "output_dir",
    "LOOP_WAIT_SECONDS": "loop_wait_seconds",
    "GLOBAL_ERROR_LOG": "global_error_log",
    "QSV_DEVICE": "qsv_device",
    "LOG_PATH": "log_path",
    "DEBUG": "debug",
}

def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> ConverterConfig:
    """Builds ConverterConfig from environment variables.

    Unset or empty variables keep the model default. Invalid values raise
    pydantic.ValidationError.
    """
    env = os.environ if environ is None else environ
    data = {}
    for name, field in ENV_FIELDS.items():
        value = env.get(name)
        if value is None or value.strip() == "":
            continue
        data[field] = value.strip()
    return ConverterConfig(**data)
