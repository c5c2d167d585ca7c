"""Local model registry backed by a JSON manifest."""

from __future__ import annotations

import json
import os
import re
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

_ZERO_TIME = "0001-01-01T00:00:00Z"
_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


def _format_time(value: datetime | None) -> str:
    if value is None:
        return _ZERO_TIME
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{mins:02d}"


def _parse_time(text: str | None) -> datetime | None:
    if not text or text == _ZERO_TIME:
        return None
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp {text!r}")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac or "0")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


@dataclass
class LocalFile:
    """A model file that exists on disk."""

    filename: str
    size: int = 0
    sha256: str = ""
    quantization: str = ""
    local_path: str = ""
    complete: bool = False
    downloaded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"filename": self.filename, "size": self.size}
        if self.sha256:
            data["sha256"] = self.sha256
        if self.quantization:
            data["quantization"] = self.quantization
        data["local_path"] = self.local_path
        data["complete"] = self.complete
        data["downloaded_at"] = _format_time(self.downloaded_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalFile:
        return cls(
            filename=data.get("filename", ""),
            size=int(data.get("size") or 0),
            sha256=data.get("sha256") or "",
            quantization=data.get("quantization") or "",
            local_path=data.get("local_path") or "",
            complete=bool(data.get("complete", False)),
            downloaded_at=_parse_time(data.get("downloaded_at")),
        )


@dataclass
class LocalModel:
    """A downloaded model in the local registry."""

    id: str
    author: str = ""
    downloaded_at: datetime | None = None
    files: list[LocalFile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id}
        if self.author:
            data["author"] = self.author
        data["downloaded_at"] = _format_time(self.downloaded_at)
        data["files"] = [f.to_dict() for f in self.files]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalModel:
        return cls(
            id=data.get("id", ""),
            author=data.get("author") or "",
            downloaded_at=_parse_time(data.get("downloaded_at")),
            files=[LocalFile.from_dict(f) for f in data.get("files") or []],
        )


@dataclass
class Manifest:
    """The on-disk registry of all downloaded models."""

    schema_version: int = 1
    models: list[LocalModel] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "models": [m.to_dict() for m in self.models],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        return cls(
            schema_version=int(data.get("schema_version") or 0),
            models=[LocalModel.from_dict(m) for m in data.get("models") or []],
        )


def extract_author(model_id: str) -> str:
    """Return the part of a model ID before the first slash, or "" if there is none."""
    author, sep, _ = model_id.partition("/")
    return author if sep else ""


class Registry:
    """Access to locally downloaded models."""

    def __init__(self, data_dir: str) -> None:
        self.data_dir = str(data_dir)
        self._lock = threading.RLock()
        self._manifest = Manifest()

    @property
    def _manifest_path(self) -> str:
        return os.path.join(self.data_dir, "manifest.json")

    def load(self) -> None:
        """Read the manifest from disk; start an empty one if none exists."""
        with self._lock:
            try:
                with open(self._manifest_path, encoding="utf-8") as handle:
                    raw = json.load(handle)
            except FileNotFoundError:
                self._manifest = Manifest(schema_version=1)
                return
            self._manifest = Manifest.from_dict(raw)

    def save(self) -> None:
        """Write the manifest to disk."""
        with self._lock:
            os.makedirs(self.data_dir, mode=0o700, exist_ok=True)
            text = json.dumps(self._manifest.to_dict(), indent=2)
            with open(self._manifest_path, "w", encoding="utf-8") as handle:
                handle.write(text)

    def list(self) -> list[LocalModel]:
        """Return all registered local models."""
        with self._lock:
            return list(self._manifest.models)

    def get(self, model_id: str) -> LocalModel | None:
        """Return the model with the given ID, or None."""
        with self._lock:
            return next((m for m in self._manifest.models if m.id == model_id), None)

    def path(self, model_id: str, filename: str = "") -> str | None:
        """Return the local path of a complete file; the first one if filename is empty."""
        with self._lock:
            for model in self._manifest.models:
                if model.id != model_id:
                    continue
                for f in model.files:
                    if f.complete and (not filename or f.filename == filename):
                        return f.local_path
            return None

    def add_file(self, model_id: str, file: LocalFile) -> None:
        """Register a downloaded file, replacing any entry with the same filename."""
        with self._lock:
            model = self.get(model_id)
            if model is None:
                self._manifest.models.append(
                    LocalModel(
                        id=model_id,
                        author=extract_author(model_id),
                        downloaded_at=datetime.now(timezone.utc),
                        files=[file],
                    )
                )
                return
            for index, existing in enumerate(model.files):
                if existing.filename == file.filename:
                    model.files[index] = file
                    return
            model.files.append(file)

    def remove(self, model_id: str, *args: str) -> None:
        """Remove a model, or only the named files of it, from the registry and disk."""
        with self._lock:
            model = self.get(model_id)
            if model is None:
                return

            if not args:
                try:
                    shutil.rmtree(self.model_dir(model_id))
                except FileNotFoundError:
                    pass
                self._manifest.models.remove(model)
                return

            doomed = set(args)
            remaining = []
            for f in model.files:
                if f.filename in doomed:
                    try:
                        os.remove(f.local_path)
                    except OSError:
                        pass
                else:
                    remaining.append(f)
            model.files = remaining

            if not remaining:
                shutil.rmtree(self.model_dir(model_id), ignore_errors=True)
                self._manifest.models.remove(model)

    def model_dir(self, model_id: str) -> str:
        """Directory for a model's files, using the org--model convention."""
        return os.path.join(self.data_dir, "models", model_id.replace("/", "--"))

    def gc(self) -> int:
        """Remove partial downloads and untracked files; return the bytes freed."""
        with self._lock:
            models_dir = os.path.join(self.data_dir, "models")
            try:
                model_entries = list(os.scandir(models_dir))
            except FileNotFoundError:
                return 0

            known = {
                f.local_path
                for m in self._manifest.models
                for f in m.files
                if f.complete
            }

            freed = 0
            for entry in model_entries:
                if not entry.is_dir():
                    continue
                dir_path = os.path.join(models_dir, entry.name)
                try:
                    children = list(os.scandir(dir_path))
                except OSError:
                    continue

                for child in children:
                    file_path = os.path.join(dir_path, child.name)
                    sidecar = child.name.endswith((".partial", ".state"))
                    if not sidecar and file_path in known:
                        continue
                    try:
                        freed += child.stat(follow_symlinks=False).st_size
                    except OSError:
                        pass
                    _remove_entry(child, file_path)

                try:
                    if not os.listdir(dir_path):
                        os.rmdir(dir_path)
                except OSError:
                    pass

            return freed


def _remove_entry(entry: os.DirEntry, path: str) -> None:
    try:
        if entry.is_dir(follow_symlinks=False):
            os.rmdir(path)
        else:
            os.remove(path)
    except OSError:
        pass