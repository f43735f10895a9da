"""
File Processor - segment extraction and output writing

Plain text (.txt, .md) is split into sentences; subtitles (.srt) into
subtitle text blocks. Everything else goes through the provider's document
API as a whole file.

Outputs are written to a temporary file and renamed into place, so a reader
never sees a half-written translation.
"""

import os
import re
import unicodedata
from pathlib import Path
from typing import List, Optional, Sequence, Union

from config.constants import SEGMENTABLE_EXTENSIONS
from config.logging_config import get_logger
from core.quality import Segment

logger = get_logger(__name__)

PathLike = Union[str, Path]

_SENTENCE_SPLIT = re.compile(r'[.!?]+')
_SRT_BLOCK_SPLIT = re.compile(r'\n\s*\n')
_UNSAFE_CHARS = re.compile(r'[^\w.\- ]+')


def is_segmentable(path: PathLike) -> bool:
    """True for formats translated segment by segment"""
    return Path(path).suffix.lower() in SEGMENTABLE_EXTENSIONS


def safe_file_name(name: str) -> str:
    """
    Strip directories and unsafe characters from an uploaded file name

    Example:
        >>> safe_file_name("../../etc/report (final).docx")
        'report final.docx'
    """
    name = unicodedata.normalize("NFKC", Path(name.replace("\\", "/")).name)
    name = _UNSAFE_CHARS.sub("", name).strip(" .")
    name = re.sub(r'\s+', ' ', name)
    return name or "document"


def output_file_name(source_file_name: str, target_lang: str) -> str:
    """report.docx + DE -> report_DE.docx"""
    source = Path(source_file_name)
    return f"{source.stem}_{target_lang.upper()}{source.suffix}"


def _read_text(path: PathLike) -> str:
    return Path(path).read_text(encoding="utf-8").replace("\r\n", "\n")


def split_sentences(content: str) -> List[str]:
    """Split on runs of . ! ?, each sentence re-terminated with '.'"""
    return [
        sentence.strip() + "."
        for sentence in _SENTENCE_SPLIT.split(content)
        if sentence.strip()
    ]


def _srt_blocks(content: str) -> List[List[str]]:
    return [block.strip().split("\n") for block in _SRT_BLOCK_SPLIT.split(content.strip())]


def extract_text_segments(path: PathLike) -> List[str]:
    """
    Extract translatable segments from a segmentable file

    Raises:
        ValueError: format is not segmentable
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in ('.txt', '.md'):
        return split_sentences(_read_text(path))

    if suffix == '.srt':
        segments = []
        for lines in _srt_blocks(_read_text(path)):
            # number, timing, then text lines
            if len(lines) >= 3:
                text = " ".join(lines[2:]).strip()
                if text:
                    segments.append(text)
        return segments

    raise ValueError(f"Unsupported file format for segment extraction: {suffix}")


def render_output(source_path: PathLike, segments: Sequence[Segment]) -> str:
    """Translated document text; untranslated segments keep their source text"""
    source_path = Path(source_path)

    if source_path.suffix.lower() != '.srt':
        return " ".join(segment.target_text or segment.source_text for segment in segments)

    blocks = []
    index = 0
    for lines in _srt_blocks(_read_text(source_path)):
        if len(lines) < 3:
            continue
        text = " ".join(lines[2:]).strip()
        if not text:
            continue
        translated = segments[index].target_text if index < len(segments) else None
        blocks.append("\n".join([lines[0], lines[1], translated or "\n".join(lines[2:])]))
        index += 1

    return "\n\n".join(blocks) + "\n"


def atomic_write_bytes(output_path: PathLike, content: bytes) -> Path:
    """Write to a temporary sibling and rename into place"""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output_path.with_name(f".{output_path.name}.tmp")

    try:
        with open(tmp_path, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, output_path)
    except OSError:
        discard_partial(tmp_path)
        raise

    logger.debug(f"Wrote {len(content)} bytes to {output_path}")
    return output_path


def write_output_file(source_path: PathLike, segments: Sequence[Segment], output_path: PathLike) -> Path:
    """Render translated segments and write them atomically"""
    return atomic_write_bytes(output_path, render_output(source_path, segments).encode("utf-8"))


def discard_partial(path: Optional[PathLike]) -> None:
    """Remove a leftover temporary or partial output file"""
    if path is None:
        return
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial output {path}: {e}")
