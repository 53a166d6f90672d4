"""
In-progress submission form state.

Selecting a file registers a local preview handle (``blob:<uuid>``) pointing at
the selected bytes. Handles live only in this process and must be released
when the selection is removed or the form is discarded.
"""
from __future__ import annotations
import re
import uuid
from dataclasses import dataclass, field
from leetuiux.services.assets import LOCAL_PREVIEW_PREFIX


class PreviewHandles:
    def __init__(self):
        self._blobs: dict[str, bytes] = {}

    def create(self, data: bytes) -> str:
        handle = f"{LOCAL_PREVIEW_PREFIX}{uuid.uuid4()}"
        self._blobs[handle] = data
        return handle

    def get(self, handle: str) -> bytes | None:
        return self._blobs.get(handle)

    def release(self, handle: str | None) -> None:
        if handle:
            self._blobs.pop(handle, None)

    def __contains__(self, handle: str) -> bool:
        return handle in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


preview_handles = PreviewHandles()


class FormError(ValueError):
    pass


def sanitize_filename(name: str) -> str:
    return re.sub(r"\s+", "_", name)


@dataclass
class SelectedFile:
    name: str
    type: str
    size: int
    data: bytes
    preview: str
    original_name: str | None = None

    def metadata(self) -> dict:
        return {"name": self.name, "type": self.type, "size": self.size}


@dataclass
class SubmissionForm:
    challenge_id: int
    title: str = ""
    description: str = ""
    tools: str = ""
    figma_embed: str = ""
    preview_image: SelectedFile | None = None
    files: list[SelectedFile] = field(default_factory=list)
    handles: PreviewHandles = field(default=preview_handles, repr=False)

    def set_preview_image(self, name: str, content_type: str | None, data: bytes) -> SelectedFile:
        if not (content_type or "").startswith("image/"):
            raise FormError("Please select an image file for the preview")
        if self.preview_image:
            self.handles.release(self.preview_image.preview)
        self.preview_image = SelectedFile(
            name=sanitize_filename(name),
            original_name=name,
            type=content_type,
            size=len(data),
            data=data,
            preview=self.handles.create(data),
        )
        return self.preview_image

    def add_file(self, name: str, content_type: str | None, data: bytes) -> SelectedFile:
        f = SelectedFile(
            name=name,
            type=content_type or "application/octet-stream",
            size=len(data),
            data=data,
            preview=self.handles.create(data),
        )
        self.files.append(f)
        return f

    def remove_file(self, index: int) -> None:
        f = self.files.pop(index)
        self.handles.release(f.preview)

    def release(self) -> None:
        """Drop every preview handle this form created."""
        if self.preview_image:
            self.handles.release(self.preview_image.preview)
        for f in self.files:
            self.handles.release(f.preview)

    @property
    def has_assets(self) -> bool:
        return bool(self.preview_image) or bool(self.files)

    @property
    def is_complete(self) -> bool:
        """Title, description and at least one asset: enough to attempt a submission."""
        return bool(self.title) and bool(self.description) and self.has_assets


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1048576:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1048576:.1f} MB"
