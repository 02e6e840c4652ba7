"""Artifact staging: make sure a model directory exists in the local cache."""

from __future__ import annotations

import logging
from pathlib import Path

from nnit.config import HarnessConfig, get_config
from nnit.engine.model import artifact_paths
from nnit.integration import file_utils

logger = logging.getLogger(__name__)


def prepare_model(config: HarnessConfig | None = None, epoch: int = 0) -> Path:
    """Return the extraction directory of the configured model archive.

    When either ``<model>-symbol.json`` or ``<model>-<epoch>.params`` is
    missing, the archive is downloaded (unless it is already in the cache),
    extracted into ``<data_dir>/<model_name>`` and then deleted. When both
    files exist nothing is downloaded or extracted.

    Raises:
        ArtifactError: Download or extraction failed.
    """
    cfg = config or get_config()
    data_dir = cfg.data_path
    archive = data_dir / cfg.archive_name
    extract_dir = data_dir / cfg.model_name

    symbol_file, params_file = artifact_paths(extract_dir / cfg.model_name, epoch)
    if symbol_file.is_file() and params_file.is_file():
        logger.debug("Model %s already staged in %s", cfg.model_name, extract_dir)
        return extract_dir

    if not archive.is_file():
        file_utils.download(cfg.source_url, data_dir, cfg.archive_name, timeout=cfg.timeout)
    file_utils.unzip(archive, extract_dir)
    file_utils.delete_file_or_dir(archive)
    logger.info("Staged model %s in %s", cfg.model_name, extract_dir)
    return extract_dir


def model_path_prefix(config: HarnessConfig | None = None) -> Path:
    """Stage the model and return its path prefix, e.g. ``~/.nnit_data/mnist/mnist``."""
    cfg = config or get_config()
    return prepare_model(cfg) / cfg.model_name
