import os
import logging
import numpy as np
import SimpleITK as sitk
from matplotlib import pyplot as plt

logger = logging.getLogger(__name__)


def generate_overview(
    image: sitk.Image | None,
    output_path: str,
    title: str = "",
) -> None:
    """
    Save a PNG showing the decoded image: the image itself for 2D data, the
    middle axial, coronal and sagittal slices for 3D data.

    Parameters:
    image (sitk.Image): The decoded image.
    output_path (str): Path of the PNG file.
    title (str): Figure title.

    Returns:
    None
    """
    if image is None:
        logger.warning("Image is None. Overview image will not be generated.")
        return

    arr = sitk.GetArrayFromImage(image).astype(np.float64)
    low = np.percentile(arr, 0.1)
    high = np.percentile(arr, 99.9)

    if arr.ndim == 2:
        views = [arr]
    elif arr.ndim == 3:
        views = [
            arr[arr.shape[0] // 2, :, :],
            np.flipud(arr[:, arr.shape[1] // 2, :]),
            np.flipud(arr[:, :, arr.shape[2] // 2]),
        ]
    else:
        logger.warning(f"Overview not supported for {arr.ndim}D images.")
        return

    fig, ax = plt.subplots(1, len(views), figsize=(6 * len(views), 6), squeeze=False)
    for i, view in enumerate(views):
        ax[0, i].imshow(view, cmap='gray', vmin=low, vmax=high)
        ax[0, i].axis('off')
    if title:
        fig.suptitle(title)

    output_dir = os.path.dirname(output_path)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)
    fig.savefig(output_path, bbox_inches='tight')
    plt.close(fig)
    logger.info(f"Overview saved to {output_path}")
