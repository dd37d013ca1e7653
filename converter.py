import os
import logging
import SimpleITK as sitk
from typing import TYPE_CHECKING, Optional

import fdftools.io as io
import fdftools.vis as vis

if TYPE_CHECKING:
    from fdftools.config import ConversionConfig

class FdfConverter:
    def __init__(self, job_id: str, config: 'ConversionConfig'):
        self.id = job_id
        self.config = config
        self.logger = logging.getLogger(f'FdfConverter.{self.id}')

        # Data placeholders
        self.image: Optional[sitk.Image] = None

    ### define filenames for output files ###
    def image_path(self) -> str:
        return os.path.join(self.config.output_dir, f'{self.id}.{self.config.output_format}')

    def overview_path(self) -> str:
        return os.path.join(self.config.output_dir, f'overview_{self.id}.png')

    ### main conversion function ###
    def run_conversion(self, skip_existing: bool = False):
        if skip_existing and self.job_complete():
            self.logger.info("Output already exists. Skipping job...")
            return
        self.logger.info("Starting conversion...")
        self.load_data()
        if self.config.overview:
            self.generate_overview()
        self.write_data()
        self.logger.info("Conversion completed.")

    ### individual conversion steps ###
    def job_complete(self) -> bool:
        """Checks if all output files for the job exist."""
        files_to_check = [self.image_path()]
        if self.config.overview:
            files_to_check.append(self.overview_path())
        return all(os.path.isfile(f) for f in files_to_check)

    def load_data(self):
        self.logger.info(f"Reading FDF data from {self.config.input_path}...")
        self.image = io.read_image(self.config.input_path)
        self.logger.info(
            f"Image loaded: size {self.image.GetSize()}, spacing {self.image.GetSpacing()}"
        )

    def generate_overview(self):
        self.logger.info("Generating overview visualization...")
        vis.generate_overview(self.image, self.overview_path(), title=self.id)

    def write_data(self):
        self.logger.info("Saving converted image...")
        io.save_image(
            self.image,
            self.image_path(),
            compression=self.config.compression,
            dtype=self.config.dtype,
        )
