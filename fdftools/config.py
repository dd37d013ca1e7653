import logging
import yaml
from pydantic import BaseModel, Field, ValidationError
from typing import Optional

logger = logging.getLogger(__name__)


class ConversionConfig(BaseModel):
    input_path: str
    output_dir: str
    output_format: str = Field(default='mha', pattern=r'^(mha|nii\.gz|nrrd)$')
    compression: bool = True
    dtype: Optional[str] = Field(default=None, pattern=r'^(float32|int16)$')
    overview: bool = False


def load_conversion_configs(config_path: str) -> dict[str, ConversionConfig]:
    with open(config_path, 'r') as f:
        raw_configs = yaml.safe_load(f) or {}

    validated_configs = {}
    for job_id, config in raw_configs.items():
        try:
            validated_configs[str(job_id)] = ConversionConfig(**(config or {}))
        except ValidationError as e:
            logger.error(f"Error validating config for {job_id}: {e}")

    return validated_configs
