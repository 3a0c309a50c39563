import logging
import os
from pathlib import Path
from typing import Generator, Set
from hevcwatch.domain.models import ConversionJob, ScanStats
from hevcwatch.domain.planning import build_plan, is_ignored, make_work_item

class FileScanner:
    """Recursively scans the input tree for files that still need converting."""

    def __init__(self, input_dir: Path, output_dir: Path):
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self.stats = ScanStats()
        self.logger = logging.getLogger(__name__)

    def scan(self) -> Generator[ConversionJob, None, None]:
        """Walks the input tree and yields one pending job per eligible file.

        A fresh walk happens on every call; `stats` is reset and filled as
        the generator is consumed. Each output path is handed out at most
        once per walk: when two sources map to the same output (`b.avi` and
        `b.mov`), only the first in discovery order is yielded.
        """
        self.stats = ScanStats()
        claimed: Set[Path] = set()
        for root, dirs, files in os.walk(str(self.input_dir)):
            root_path = Path(root)

            # Ensure deterministic traversal: sort directories and files
            dirs.sort()
            files.sort()

            for file_name in files:
                file_path = root_path / file_name
                try:
                    if not file_path.is_file():
                        continue
                    self.stats.found += 1

                    if is_ignored(file_path):
                        self.stats.skipped_log += 1
                        continue

                    item = make_work_item(file_path, self.input_dir)
                    plan = build_plan(item, self.output_dir)

                    if plan.output_path in claimed:
                        self.stats.duplicate_output += 1
                        self.logger.warning(
                            f"Skipping {item.relative_path}: output {plan.output_path} "
                            f"is already produced from another source"
                        )
                        continue

                    if plan.output_path.exists():
                        self.stats.already_converted += 1
                        continue
                except OSError as e:
                    # Skip files we can't access
                    self.stats.unreadable += 1
                    self.logger.warning(f"Skipping unreadable file {file_path}: {e}")
                    continue

                claimed.add(plan.output_path)
                self.stats.queued += 1
                yield ConversionJob(item=item, plan=plan)
