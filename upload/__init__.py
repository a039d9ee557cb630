"""Upload package for mrbwrite.

Contains the bytecode transfer:
- uploader: BytecodeUploader, UploadResult, UploadError
"""

from upload.uploader import BytecodeUploader, UploadError, UploadResult

__all__ = [
    "BytecodeUploader",
    "UploadError",
    "UploadResult",
]
