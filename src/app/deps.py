from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from src.core.storage import UploadStore
from src.core.text_generation import TextGenerator, default_generator
from src.leakfinder.config import LeaksConfig, load_config


log = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_config() -> LeaksConfig:
    cfg, path = load_config()
    log.info("Loaded config from %s", path or "defaults")
    return cfg


def get_store() -> UploadStore:
    return UploadStore(get_config().storage.uploads_dir)


def get_text_generator() -> Optional[TextGenerator]:
    return default_generator(get_config().text_generation)
