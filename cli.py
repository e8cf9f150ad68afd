"""
Headless CLI entry point for the FBP reconstruction toolkit.

Loads (or synthesizes) a sinogram, reconstructs it with the registered FBP
algorithm and exports the slice, without any display server.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Dict, List, Optional


def _configure_headless_vtk() -> None:
    """Force VTK / PyVista into offscreen mode when no display is available."""
    display = os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")
    if not display:
        os.environ.setdefault("PYVISTA_OFF_SCREEN", "true")
        os.environ.setdefault("VTK_DEFAULT_RENDER_WINDOW_OFFSCREEN", "1")


_configure_headless_vtk()


import numpy as np

from config import CLI_OUTPUT_DIR, LOG_FORMAT, LOG_LEVEL
from core import FBPRunDTO, ProjectionData2D, is_gpu_available, proj_geom_from_dict, vol_geom_from_dict
from core.progress import ProgressBus, TerminalProgressObserver
from data import clear_all, get_algorithm_manager, get_data_manager
from loaders import DiskPhantomLoader, NpySinogramLoader
from reconstruction import create_algorithm, resolve_filter

logger = logging.getLogger("cli")


def _load_sinogram(dto: FBPRunDTO, progress_bus: ProgressBus) -> ProjectionData2D:
    geometry = proj_geom_from_dict(dto.projection_geometry)
    loader_type = dto.loader_type.strip().lower()
    if loader_type == "phantom":
        loader = DiskPhantomLoader()
        return loader.load(geometry, callback=progress_bus.stage_callback("load"))
    if loader_type == "npy":
        if not dto.input_path:
            raise ValueError("The npy loader needs an input path.")
        loader = NpySinogramLoader(geometry)
        return loader.load(dto.input_path, callback=progress_bus.stage_callback("load"))
    raise ValueError(f"Unknown loader type: {dto.loader_type!r}. Supported: 'phantom', 'npy'.")


def _register_filter(dto: FBPRunDTO, sinogram: ProjectionData2D) -> Optional[int]:
    """
    Store custom filter coefficients as a projection dataset, if given.

    The file must hold one row per projection angle (angles x detectors).
    Filters that share one row across angles also accept a single row of
    detector-count values, which is repeated for every angle.

    Raises:
        ValueError: If the file size does not fit the sinogram geometry.
    """
    if not dto.filter_path:
        return None
    kind = resolve_filter(dto.filter_type)
    angles, detectors = sinogram.geometry.sinogram_shape
    flat = np.asarray(np.load(dto.filter_path), dtype=np.float32).ravel()

    if flat.size == angles * detectors:
        rows = flat.reshape(angles, detectors)
    elif flat.size == detectors and not kind.is_angle_indexed:
        rows = np.tile(flat, (angles, 1))
    else:
        expected = str(angles * detectors)
        if not kind.is_angle_indexed:
            expected += f" or {detectors}"
        raise ValueError(
            f"Filter file {dto.filter_path!r} holds {flat.size} value(s); "
            f"filter '{kind.value}' on a {angles}x{detectors} sinogram needs {expected}."
        )

    filt = ProjectionData2D(sinogram.geometry)
    filt.set_data(rows)
    return get_data_manager().store(filt)


def _export(dto: FBPRunDTO, reconstruction, callback=None) -> List[str]:
    from exporters import NpyExporter, VTKExporter

    out_dir = dto.output_dir or CLI_OUTPUT_DIR
    os.makedirs(out_dir, exist_ok=True)
    written = []
    total = len(dto.export_formats)
    for i, fmt in enumerate(dto.export_formats):
        if callback:
            callback(100 * i // total, f"Writing {fmt}...")
        fmt = fmt.lower().lstrip(".")
        if fmt == "npy":
            path = os.path.join(out_dir, "reconstruction.npy")
            NpyExporter.export(reconstruction, path)
        elif fmt in ("vti", "vtk"):
            path = os.path.join(out_dir, "reconstruction.vti")
            VTKExporter.export(reconstruction, path)
        else:
            logger.warning("Skipping unknown export format %r", fmt)
            continue
        written.append(path)
    if callback:
        callback(100, f"{len(written)} file(s) written.")
    return written


def run_batch(dto: FBPRunDTO) -> Dict[str, object]:
    """
    Load, reconstruct and export one slice.

    Returns:
        Dict with the reconstruction dataset and the exported paths.
    """
    progress_bus = ProgressBus().subscribe(TerminalProgressObserver())
    data_manager = get_data_manager()

    t_start = time.perf_counter()
    sinogram = _load_sinogram(dto, progress_bus)
    proj_id = data_manager.store(sinogram)
    rec_id = data_manager.create_volume(vol_geom_from_dict(dto.volume_geometry))
    filter_id = _register_filter(dto, sinogram)

    algorithm = create_algorithm(dto.to_config(proj_id, rec_id, filter_id))
    get_algorithm_manager().store(algorithm)
    algorithm.run(callback=progress_bus.stage_callback("fbp"))

    reconstruction = data_manager.get_volume(rec_id)
    exported = _export(dto, reconstruction, progress_bus.stage_callback("export"))
    elapsed = time.perf_counter() - t_start

    print(f"\nReconstruction complete in {elapsed:.2f}s")
    if exported:
        print("Exported files:")
        for path in exported:
            print(f"  {path}")

    return {"reconstruction": reconstruction, "export": exported}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python cli.py",
        description="Headless filtered back-projection of one 2-D sinogram",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Path to YAML or JSON config file. Overrides other flags.",
    )
    parser.add_argument("--input", metavar="PATH", default="", help="Sinogram .npy file (npy loader).")
    parser.add_argument("--loader", metavar="TYPE", default="phantom", help="Loader type: phantom | npy.")
    parser.add_argument("--filter", metavar="NAME", default="ram-lak", help="Filter type, e.g. ram-lak, hann.")
    parser.add_argument("--filter-parameter", metavar="P", type=float, default=-1.0,
                        help="Filter parameter (-1 selects the filter's default).")
    parser.add_argument("--filter-d", metavar="D", type=float, default=1.0, help="Frequency cutoff scale.")
    parser.add_argument("--gpu", metavar="INDEX", type=int, default=-1, help="GPU index (-1 = current).")
    parser.add_argument("--output", metavar="DIR", default=None, help="Output directory.")
    parser.add_argument(
        "--formats",
        metavar="FMT",
        nargs="+",
        default=["npy", "vti"],
        help="Export formats: npy vti (space-separated).",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print resolved DTO without running.")
    return parser


def _resolve_dto(args: argparse.Namespace, parser: argparse.ArgumentParser) -> FBPRunDTO:
    """Resolve DTO from config file or inline CLI flags."""
    if args.config:
        cfg_path = args.config
        if cfg_path.endswith((".yaml", ".yml")):
            return FBPRunDTO.from_yaml(cfg_path)
        if cfg_path.endswith(".json"):
            return FBPRunDTO.from_json(cfg_path)
        try:
            return FBPRunDTO.from_yaml(cfg_path)
        except Exception:
            return FBPRunDTO.from_json(cfg_path)

    if args.loader == "npy" and not args.input:
        parser.error("The npy loader needs --input PATH (or use --config FILE)")

    return FBPRunDTO(
        input_path=args.input,
        loader_type=args.loader,
        filter_type=args.filter,
        filter_parameter=args.filter_parameter,
        filter_d=args.filter_d,
        gpu_index=args.gpu,
        output_dir=args.output,
        export_formats=tuple(args.formats),
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    dto = _resolve_dto(args, parser)

    if args.dry_run:
        import json

        print("Resolved FBPRunDTO:")
        print(json.dumps(dto.to_dict(), indent=2))
        return 0

    print("=" * 60)
    print("FBP Reconstruction - Headless Batch Processor")
    print(f"Backend: {'CuPy (GPU)' if is_gpu_available() else 'NumPy (CPU)'}")
    print("=" * 60)

    try:
        run_batch(dto)
    except KeyboardInterrupt:
        print("\nAborted by user.")
        return 1
    except Exception as exc:
        import traceback

        print(f"\nReconstruction failed: {type(exc).__name__}: {exc}")
        traceback.print_exc()
        return 2
    finally:
        clear_all()

    return 0


if __name__ == "__main__":
    sys.exit(main())
