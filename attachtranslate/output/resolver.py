# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from pathlib import Path

from attachtranslate.mime.resolver import extension_from_mime

DEFAULT_SUFFIX = "_translated"


def resolve_output(input_path: Path | str, *, out_path: Path | str | None = None, overwrite: bool = False,
                   suffix: str = DEFAULT_SUFFIX, output_ext: str | None = None, is_dir: bool = False) -> Path:
    """
    Where the translated counterpart of ``input_path`` goes.

    Explicit ``out_path`` wins; an existing directory there receives ``<stem><ext>``.
    Otherwise ``overwrite`` writes in place, and the default is the sibling
    ``<stem><suffix><ext>`` (``<dirname><suffix>`` for directories).
    ``output_ext`` replaces the input extension when the output format differs.
    """
    if out_path is not None and overwrite:
        raise ValueError("--out and --overwrite cannot be used together")
    input_path = Path(input_path)
    ext = input_path.suffix
    if output_ext:
        ext = output_ext if output_ext.startswith(".") else f".{output_ext}"

    if out_path is not None:
        out_path = Path(out_path)
        if not is_dir and out_path.is_dir():
            return out_path / f"{input_path.stem}{ext}"
        return out_path
    if overwrite:
        return input_path
    if is_dir:
        return input_path.with_name(f"{input_path.name}{suffix}")
    return input_path.with_name(f"{input_path.stem}{suffix}{ext}")


def validate_directory_output(src_root: Path, out_root: Path | None, overwrite: bool,
                              suffix: str = DEFAULT_SUFFIX) -> Path:
    """Check and return the output root of a directory run."""
    if out_root is not None and overwrite:
        raise ValueError("--out and --overwrite cannot be used together")
    if out_root is None:
        return resolve_output(src_root, overwrite=overwrite, suffix=suffix, is_dir=True)
    if out_root.exists() and not out_root.is_dir():
        raise ValueError(f"output path must be a directory for directory input: {out_root}")
    if out_root.resolve() == src_root.resolve():
        raise ValueError("output directory is the input directory; use --overwrite to translate in place")
    return out_root


def resolve_in_tree(src_root: Path, dest_root: Path, src_file: Path, input_mime: str | None = None,
                    output_mime: str | None = None) -> Path:
    """
    Mirror ``src_file`` under ``dest_root``. The extension changes only when the output
    mime differs from the input mime.
    """
    rel = src_file.relative_to(src_root)
    dest = dest_root / rel
    if output_mime and input_mime and output_mime != input_mime:
        ext = extension_from_mime(output_mime)
        if ext:
            dest = dest.with_suffix(f".{ext}")
    return dest
