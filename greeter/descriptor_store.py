import logging
from collections.abc import Iterable

import numpy as np

from greeter import config
from greeter.errors import ImageLoadError, NoFaceDetectedError, NoReferenceDataError
from greeter.models import ReferenceSet

logger = logging.getLogger(__name__)


def _extract_descriptor(detector, image_source, label: str, index: int) -> np.ndarray:
    with image_source.open(label, index) as img:
        logger.debug("Processing image %d for %s...", index, label)
        descriptor = detector.describe_largest(img)
    if descriptor is None:
        raise NoFaceDetectedError(f"no face detected in image {index} for '{label}'")
    return descriptor


def load_label_descriptors(detector, image_source, label: str, images_per_label: int) -> list[np.ndarray]:
    """
    Descriptors for every candidate image 1..images_per_label of one label.

    Missing images and images without a face are skipped with a warning;
    any other per-image failure is logged and skipped as well.
    """
    descriptors: list[np.ndarray] = []
    for index in range(1, images_per_label + 1):
        try:
            descriptors.append(_extract_descriptor(detector, image_source, label, index))
        except ImageLoadError as e:
            logger.warning("Image %d for %s not loaded, skipping: %s", index, label, e)
            continue
        except NoFaceDetectedError:
            logger.warning("No face detected in image %d for %s", index, label)
            continue
        except Exception:
            logger.exception("Error processing image %d for %s, skipping", index, label)
            continue
        logger.debug("Processed image %d for %s", index, label)
    return descriptors


def build_reference_set(
    labels: Iterable[str],
    image_source,
    detector,
    images_per_label: int | None = None,
) -> ReferenceSet:
    """
    Build the ReferenceSet used for matching.

    Args:
        labels: identities to load, in the order they should be matched
        image_source: object with an ``open(label, index)`` context manager
        detector: object with ``describe_largest(image) -> descriptor | None``
        images_per_label: number of candidate images per label

    Returns:
        ReferenceSet holding only labels with at least one descriptor

    Raises:
        NoReferenceDataError: if no label produced a descriptor
    """
    if images_per_label is None:
        images_per_label = config.IMAGES_PER_LABEL

    entries: dict[str, list[np.ndarray]] = {}
    scanned = 0
    for label in labels:
        logger.info("Loading images for %s...", label)
        descriptors = load_label_descriptors(detector, image_source, label, images_per_label)
        scanned += images_per_label
        if descriptors:
            entries[label] = descriptors
            logger.info("[loaded] %s: %d image(s)", label, len(descriptors))
        else:
            logger.warning("No valid face descriptors found for %s", label)

    reference_set = ReferenceSet(entries)
    logger.info(
        "[summary] identities: %d; images tried: %d, images used: %d",
        len(reference_set),
        scanned,
        reference_set.num_descriptors,
    )
    if not reference_set:
        raise NoReferenceDataError(f"No valid face descriptors were created from {image_source!r}")
    return reference_set
