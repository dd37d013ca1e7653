import os
import fnmatch
import logging
from typing import List, Optional

import SimpleITK as sitk
from tqdm import tqdm

import fdftools.fdf_reader as fdf_reader
from fdftools.fdf_header import ORIGIN_SCALE, ROI_TO_MM

logger = logging.getLogger(__name__)


def find_fdf_files(directory: str) -> List[str]:
    filenames = sorted(fnmatch.filter(os.listdir(directory), "*.fdf"))
    filenames += sorted(fnmatch.filter(os.listdir(directory), "*.FDF"))
    return [os.path.join(directory, f) for f in filenames]


def read_fdf_series(directory: str) -> sitk.Image:
    """
    Read a directory of 2D FDF slices (one file per slice, as written by VnmrJ)
    and stack them into a 3D image. The slice spacing is taken from the
    `location` difference of the first two slices.
    """
    filenames = find_fdf_files(directory)
    if not filenames:
        logger.error(f"No FDF files found in directory: {directory}")
        raise FileNotFoundError(f"No FDF files found in directory: {directory}")
    logger.info(f"Found {len(filenames)} FDF slices in {directory}")

    slices = []
    headers = []
    for filename in tqdm(filenames, desc="Reading FDF slices"):
        image, header = fdf_reader.read_fdf(filename)
        if image.GetDimension() != 2:
            raise ValueError(f"Expected 2D FDF slices, {filename} has {image.GetDimension()} dimensions")
        slices.append(image)
        headers.append(header)

    if len(slices) == 1:
        return slices[0]

    spacing_z = 1.0
    origin_z = 0.0
    first, second = headers[0], headers[1]
    if len(first.location) >= 3 and len(second.location) >= 3:
        # spacing on the roi scale, origin on the header origin scale
        spacing_z = abs(second.location[2] - first.location[2]) * ROI_TO_MM
        origin_z = first.location[2] * ORIGIN_SCALE
    if spacing_z == 0:
        logger.warning(f"FDF slices in {directory} share the same location; using slice spacing 1.0")
        spacing_z = 1.0

    volume = sitk.JoinSeries(slices, origin_z, spacing_z)
    logger.info(f"FDF series stacked into volume of size {volume.GetSize()}")
    return volume


def read_image(image_path: str) -> sitk.Image:
    """
    Read an image from the specified path. Directories are read as a series
    of FDF slices, .fdf files with the FDF reader and everything else with
    SimpleITK.
    """
    if os.path.isdir(image_path):
        image = read_fdf_series(image_path)
    elif os.path.isfile(image_path):
        if image_path.endswith(fdf_reader.FDF_EXTENSIONS):
            image, _ = fdf_reader.read_fdf(image_path)
        else:
            try:
                image = sitk.ReadImage(image_path)
            except Exception as e:
                logger.error(f"Error reading image file {image_path}: {e}")
                raise
    else:
        logger.error(f"Image path not found: {image_path}")
        raise FileNotFoundError(f"Image path not found: {image_path}")

    logger.info(f'Image sucessfully read from {image_path}')
    return image


def save_image(image: Optional[sitk.Image], image_path: str, compression: bool = True, dtype: Optional[str] = None) -> None:
    """
    Save the given SimpleITK image to the specified file path.

    Args:
        image (sitk.Image): The SimpleITK image to be saved.
        image_path (str): The file path where the image will be saved.
        compression(bool): Whether to use compression when saving the image. Default is True.
        dtype(str): Default is None (keep the pixel type). Allowed dtypes: float32 and int16
    """
    if image is None:
        raise ValueError(f"No image to save to {image_path}")

    if dtype is not None:
        if dtype == 'float32':
            image = sitk.Cast(image, sitk.sitkFloat32)
        elif dtype == 'int16':
            if image.GetPixelIDValue() != sitk.sitkFloat32:
                image = sitk.Cast(image, sitk.sitkFloat32)
            image = sitk.Cast(sitk.Round(image), sitk.sitkInt16)
        else:
            raise ValueError('Invalid dtype/not implemented. Allowed dtypes: float32 and int16')

    output_dir = os.path.dirname(image_path)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)

    sitk.WriteImage(image, image_path, useCompression=compression)
    logger.info(f'Image saved to {image_path}')
