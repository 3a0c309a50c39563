from pathlib import Path
from .models import ContainerKind, ConversionPlan, WorkItem

IGNORED_EXTENSIONS = {"log"}

# Everything except data and attachment streams; chapters follow map 0.
MATROSKA_STREAM_MAP = ["-map", "0", "-map", "-0:d", "-map", "-0:t"]
MATROSKA_SUBTITLE_COPY = ["-c:s", "copy"]


def extension_of(path: Path) -> str:
    if path.suffix:
        return path.suffix[1:].lower()
    # Dot files such as ".log" have no suffix for pathlib; treat the name after the dot as extension
    name = path.name
    if name.startswith(".") and len(name) > 1:
        return name[1:].lower()
    return ""


def is_ignored(path: Path) -> bool:
    return extension_of(path) in IGNORED_EXTENSIONS


def make_work_item(source_path: Path, input_dir: Path) -> WorkItem:
    try:
        rel_path = source_path.relative_to(input_dir)
    except ValueError:
        rel_path = Path(source_path.name)
    return WorkItem(
        source_path=source_path,
        relative_path=rel_path,
        extension=extension_of(source_path),
    )


def build_plan(item: WorkItem, output_dir: Path) -> ConversionPlan:
    """Matroska sources stay Matroska with every track; the rest become MP4."""
    if item.extension == "mkv":
        return ConversionPlan(
            output_path=output_dir / item.relative_path.with_suffix(".mkv"),
            container_kind=ContainerKind.MATROSKA,
            stream_map_args=list(MATROSKA_STREAM_MAP),
            subtitle_copy_args=list(MATROSKA_SUBTITLE_COPY),
        )
    return ConversionPlan(
        output_path=output_dir / item.relative_path.with_suffix(".mp4"),
        container_kind=ContainerKind.MP4,
    )
