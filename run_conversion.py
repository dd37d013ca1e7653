import logging

from converter import FdfConverter
from fdftools.config import load_conversion_configs
import argparse

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logger = logging.getLogger(__name__)

    # load config file from first argument
    parser = argparse.ArgumentParser(description="Convert FDF images to other image formats.")
    parser.add_argument('-config_file', '-c', type=str, required=True, help='Path to the configuration file.')
    parser.add_argument('--skip_existing', action='store_true', help='Skip jobs whose output already exists.')
    args = parser.parse_args()
    configs = load_conversion_configs(args.config_file)

    for job_id, config in configs.items():
        try:
            logger.info(f"--- Converting {job_id} ---")
            converter = FdfConverter(job_id, config)
            converter.run_conversion(skip_existing=args.skip_existing)
            logger.info(f"--- Successfully converted {job_id} ---")

        except Exception as e:
            logger.error(f"Failed to convert {job_id}: {e}", exc_info=True)
