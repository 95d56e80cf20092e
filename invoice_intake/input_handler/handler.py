"""
Main Input Handler Module.

This module provides the InputHandler class, the intake surface of the
system. It validates invoice files, detects their kind and reads their
bytes into InputFile objects that the pipeline wraps as documents.

Usage:
    from invoice_intake.input_handler import InputHandler

    handler = InputHandler()
    input_file = handler.load("factura.pdf")

    # Every supported file in a directory
    paths = handler.collect("./facturas/")

Classes:
    InputFile: Raw file accepted by the intake surface
    InputHandler: Validation, kind detection and loading
"""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.helpers import get_file_extension
from invoice_intake.utils.exceptions import (
    InputError,
    UnsupportedFileTypeError,
    FileNotFoundError,
    CorruptedFileError
)

logger = get_logger(__name__)

PDF_KIND = 'pdf'
IMAGE_KIND = 'image'


@dataclass
class InputFile:
    """
    A file accepted for processing.

    Attributes:
        path: Original file path (None for in-memory uploads)
        filename: File name shown to the user
        kind: 'pdf' or 'image'
        data: Raw file bytes
        mime_type: MIME type used when the file is uploaded
        metadata: Additional file metadata
    """
    path: Optional[str]
    filename: str
    kind: str
    data: bytes
    mime_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"InputFile(filename='{self.filename}', "
            f"kind='{self.kind}', "
            f"size={len(self.data)})"
        )


class InputHandler:
    """
    Intake surface for invoice files.

    Attributes:
        supported_extensions: Set of accepted file extensions

    Example:
        >>> handler = InputHandler()
        >>> input_file = handler.load("factura.pdf")
        >>> input_file.kind
        'pdf'
    """

    PDF_EXTENSIONS = {'.pdf'}
    IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.tiff', '.tif', '.bmp', '.webp'}

    def __init__(self) -> None:
        """Initialize the InputHandler from the ``input`` configuration."""
        self.supported_extensions = {
            ext.lower() for ext in get_config(
                "input.supported_extensions",
                sorted(self.PDF_EXTENSIONS | self.IMAGE_EXTENSIONS)
            )
        }

        logger.info(f"InputHandler initialized with extensions: {sorted(self.supported_extensions)}")

    def detect_kind(self, filename: Union[str, Path]) -> str:
        """
        Detect the document kind from its extension.

        Returns:
            'pdf' or 'image'.

        Raises:
            UnsupportedFileTypeError: If the extension is not accepted.
        """
        extension = get_file_extension(filename)

        if extension not in self.supported_extensions:
            raise UnsupportedFileTypeError(extension or filename, list(self.supported_extensions))

        if extension in self.PDF_EXTENSIONS:
            return PDF_KIND
        if extension in self.IMAGE_EXTENSIONS:
            return IMAGE_KIND

        raise UnsupportedFileTypeError(extension, list(self.supported_extensions))

    def validate_file(self, filepath: Union[str, Path]) -> Path:
        """
        Validate that a file exists, is accepted and is not empty.

        Raises:
            FileNotFoundError: If file doesn't exist.
            UnsupportedFileTypeError: If file type is not supported.
            CorruptedFileError: If the file is empty.
        """
        path = Path(filepath)

        if not path.exists():
            raise FileNotFoundError(str(filepath))

        if not path.is_file():
            raise InputError(f"Path is not a file: {filepath}")

        self.detect_kind(path)

        if path.stat().st_size == 0:
            raise CorruptedFileError(str(filepath), "File is empty")

        logger.debug(f"File validated: {filepath}")
        return path

    def load(self, filepath: Union[str, Path]) -> InputFile:
        """
        Validate a file and read it into memory.

        Args:
            filepath: Path to the invoice file.

        Returns:
            InputFile with the file bytes.
        """
        path = self.validate_file(filepath)
        input_file = self.load_bytes(path.read_bytes(), path.name, path=str(path))
        input_file.metadata['file_size_bytes'] = path.stat().st_size
        return input_file

    def load_bytes(self, data: bytes, filename: str, path: Optional[str] = None) -> InputFile:
        """
        Accept an in-memory upload.

        Raises:
            UnsupportedFileTypeError: If the file name has no accepted extension.
            CorruptedFileError: If data is empty.
        """
        kind = self.detect_kind(filename)
        if not data:
            raise CorruptedFileError(filename, "File is empty")

        mime_type = mimetypes.guess_type(filename)[0]
        if mime_type is None:
            mime_type = 'application/pdf' if kind == PDF_KIND else 'application/octet-stream'

        logger.info(f"Accepted {kind} file: {filename} ({len(data)} bytes)")
        return InputFile(
            path=path,
            filename=filename,
            kind=kind,
            data=data,
            mime_type=mime_type,
            metadata={'extension': get_file_extension(filename)}
        )

    def collect(self, directory: Union[str, Path], recursive: bool = False) -> List[Path]:
        """
        List every supported file in a directory, sorted by name.

        Raises:
            FileNotFoundError: If the directory does not exist.
            InputError: If the path is not a directory.
        """
        directory = Path(directory)

        if not directory.exists():
            raise FileNotFoundError(str(directory))

        if not directory.is_dir():
            raise InputError(f"Path is not a directory: {directory}")

        pattern = "**/*" if recursive else "*"
        files = sorted(
            path for path in directory.glob(pattern)
            if path.is_file() and get_file_extension(path) in self.supported_extensions
        )

        logger.info(f"Found {len(files)} files to process in {directory}")
        return files
