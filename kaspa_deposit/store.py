"""Local wallet store access.

The store is the folder holding rusty-kaspa wallet documents. Opening it only
checks that the requested wallet document is present and well formed; keys
stay encrypted and are only ever unlocked by the wallet service.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import StoreError

logger = logging.getLogger(__name__)

WALLET_FILE_SUFFIX = ".wallet"


@dataclass
class LocalStore:
    folder: Path
    filename: str
    document: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def path(self) -> Path:
        return self.folder / self.filename


def _wallet_filename(name: str) -> str:
    if not name:
        raise StoreError("wallet file name must not be empty", operation="open wallet store")
    if Path(name).name != name:
        raise StoreError(
            f"wallet file name must not contain a path: {name}", operation="open wallet store"
        )
    return name if name.endswith(WALLET_FILE_SUFFIX) else name + WALLET_FILE_SUFFIX


def open_local_store(folder: Path, filename: str) -> LocalStore:
    """Open the wallet document ``filename`` inside ``folder``."""

    name = _wallet_filename(filename)
    if not folder.is_dir():
        raise StoreError(
            f"failed to open wallet local store: {folder} does not exist",
            operation="open wallet store",
        )
    path = folder / name
    if not path.is_file():
        known = sorted(entry.name for entry in folder.glob(f"*{WALLET_FILE_SUFFIX}"))
        hint = f" (found: {', '.join(known)})" if known else ""
        raise StoreError(
            f"failed to open wallet local store: no wallet file {path}{hint}",
            operation="open wallet store",
        )
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreError(
            f"failed to open wallet local store: cannot read {path}: {exc.strerror or exc}",
            operation="open wallet store",
        ) from exc
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoreError(
            f"failed to open wallet local store: {path} is corrupted ({exc.msg})",
            operation="open wallet store",
        ) from exc
    if not isinstance(document, dict):
        raise StoreError(
            f"failed to open wallet local store: {path} is not a wallet document",
            operation="open wallet store",
        )
    logger.debug("Opened wallet store %s", path)
    return LocalStore(folder=folder, filename=name, document=document)
