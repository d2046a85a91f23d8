from __future__ import annotations

import time
import zipfile
from pathlib import Path
from typing import Iterable, Optional


def create_debug_bundle(
    *,
    debug_dir: str,
    log_file: str,
    out_dir: str = "data",
    screenshots: Optional[Iterable[str]] = None,
    summary: str = "",
) -> Path:
    """
    Zip one failed run's evidence (debug dir, run log, screenshots, a short summary) for offline triage.

    Intentionally excludes secrets (.env, config.yaml).
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)
    out_path = out_root / f"debug_bundle_{time.strftime('%Y%m%d_%H%M%S')}.zip"

    def _add(z: zipfile.ZipFile, src: Path, arcname: str) -> None:
        try:
            if src.is_file():
                z.write(src, arcname=arcname)
        except OSError:
            # a screenshot or dump can vanish between listing and zipping
            return

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        if summary:
            z.writestr("summary.txt", summary.rstrip() + "\n")

        log = Path(log_file)
        _add(z, log, log.name)

        dbg = Path(debug_dir)
        if dbg.is_dir():
            for p in sorted(dbg.rglob("*")):
                _add(z, p, f"debug/{p.relative_to(dbg).as_posix()}")

        for raw in screenshots or ():
            shot = Path(raw)
            _add(z, shot, f"screenshots/{shot.name}")

    return out_path
