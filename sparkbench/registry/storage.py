"""Disk layout and path resolution for model files."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class StorageLayout:
    """Paths for model files under a data directory."""

    data_dir: str

    def model_dir(self, model_id: str) -> str:
        """Directory for a model's files, using the org--model convention."""
        return os.path.join(self.data_dir, "models", model_id.replace("/", "--"))

    def file_path(self, model_id: str, filename: str) -> str:
        """Full path where a specific file is stored."""
        return os.path.join(self.model_dir(model_id), filename)

    def partial_path(self, model_id: str, filename: str) -> str:
        """Path of an in-progress download."""
        return self.file_path(model_id, filename) + ".partial"

    def state_path(self, model_id: str, filename: str) -> str:
        """Path of a download state sidecar."""
        return self.file_path(model_id, filename) + ".state"

    def ensure_model_dir(self, model_id: str) -> None:
        """Create the model directory if it does not exist."""
        os.makedirs(self.model_dir(model_id), mode=0o700, exist_ok=True)

    def manifest_path(self) -> str:
        """Path of the manifest file."""
        return os.path.join(self.data_dir, "manifest.json")