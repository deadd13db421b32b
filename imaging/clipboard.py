# =============================================================================
# MCP-VL Image Analysis - Clipboard Capture Module
# =============================================================================
# Provides the ClipboardCapture class that writes the image currently on the
# OS clipboard into a fresh temp file.  Reading the clipboard is platform
# specific, so each platform mechanism lives behind the ClipboardBackend
# interface:
#
#   - AppleScriptBackend : macOS, osascript writing «class PNGf»
#   - WaylandBackend     : wl-paste (wl-clipboard)
#   - X11Backend         : xclip
#   - PillowBackend      : PIL.ImageGrab (Windows, and the last resort)
#
# "No image on the clipboard" is a normal outcome here (None), not an error.
# =============================================================================

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

from PIL import Image, ImageGrab

from imaging.artifacts import AcquiredImage, TempArtifactManager
from shared.schemas import Provenance

logger = logging.getLogger(__name__)

_PNG_MIME = "image/png"

# Writes the clipboard as PNG to the POSIX path passed in argv; returns the
# path on success and "" when the clipboard holds no PNG-convertible data.
_APPLESCRIPT = """
on run argv
  set outputPath to item 1 of argv
  try
    set pngData to (the clipboard as «class PNGf»)
    set theFile to open for access POSIX file outputPath with write permission
    set eof of theFile to 0
    write pngData to theFile
    close access theFile
    return outputPath
  on error
    try
      close access POSIX file outputPath
    end try
    return ""
  end try
end run
"""


class ClipboardBackend:
    """
    Capability interface for one platform clipboard mechanism.

    Implementations write PNG bytes of the current clipboard image to
    ``output_path`` and return True, or return False when there is no image.
    They may raise OSError/SubprocessError; ClipboardCapture treats that as
    "no image".
    """

    name = "base"

    def try_capture(self, output_path: Path) -> bool:
        raise NotImplementedError


class _CommandBackend(ClipboardBackend):
    """Shared subprocess plumbing for the command-line backends."""

    def __init__(self, timeout: float = 10.0, runner: Callable = subprocess.run):
        self._timeout = timeout
        self._run = runner

    def _output(self, args: Sequence[str]) -> Optional[bytes]:
        """Run a command and return its stdout, or None on non-zero exit."""
        completed = self._run(
            list(args),
            capture_output=True,
            timeout=self._timeout,
            check=False,
        )
        if completed.returncode != 0:
            logger.debug(
                "%s exited with %d: %s",
                args[0],
                completed.returncode,
                completed.stderr.decode("utf-8", "replace").strip(),
            )
            return None
        return completed.stdout

    def _write_if_image(self, listing: Optional[bytes], data_args: Sequence[str], output_path: Path) -> bool:
        if listing is None:
            return False
        types = listing.decode("utf-8", "replace").split()
        if _PNG_MIME not in types:
            logger.debug("%s: clipboard offers %s, no %s", self.name, types, _PNG_MIME)
            return False
        data = self._output(data_args)
        if not data:
            return False
        output_path.write_bytes(data)
        return True


class AppleScriptBackend(_CommandBackend):
    """macOS: ask osascript to dump the clipboard as PNG."""

    name = "applescript"

    def try_capture(self, output_path: Path) -> bool:
        stdout = self._output(["osascript", "-e", _APPLESCRIPT, str(output_path)])
        if stdout is None:
            return False
        returned = stdout.decode("utf-8", "replace").strip()
        return bool(returned) and output_path.exists()


class WaylandBackend(_CommandBackend):
    """Wayland: wl-paste from wl-clipboard."""

    name = "wayland"

    def try_capture(self, output_path: Path) -> bool:
        listing = self._output(["wl-paste", "--list-types"])
        return self._write_if_image(
            listing,
            ["wl-paste", "--no-newline", "--type", _PNG_MIME],
            output_path,
        )


class X11Backend(_CommandBackend):
    """X11: xclip against the CLIPBOARD selection."""

    name = "x11"

    def try_capture(self, output_path: Path) -> bool:
        listing = self._output(["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"])
        return self._write_if_image(
            listing,
            ["xclip", "-selection", "clipboard", "-t", _PNG_MIME, "-o"],
            output_path,
        )


class PillowBackend(ClipboardBackend):
    """Windows (and fallback): PIL.ImageGrab.grabclipboard()."""

    name = "pillow"

    def __init__(self, grab: Callable = ImageGrab.grabclipboard):
        self._grab = grab

    def try_capture(self, output_path: Path) -> bool:
        try:
            content = self._grab()
        except NotImplementedError as exc:
            # Linux without wl-paste/xclip
            logger.debug("ImageGrab clipboard unsupported here: %s", exc)
            return False
        # grabclipboard returns a list of file names when files were copied
        if isinstance(content, list):
            content = self._first_image_file(content)
        if not isinstance(content, Image.Image):
            return False
        image = content
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            image = image.convert("RGBA")
        image.save(output_path, format="PNG")
        return True

    @staticmethod
    def _first_image_file(filenames: List[str]) -> Optional[Image.Image]:
        for filename in filenames:
            try:
                with Image.open(filename) as img:
                    img.load()
                    return img.copy()
            except (OSError, SyntaxError):
                continue
        return None


def select_clipboard_backend(
    platform: str = sys.platform,
    environ: Optional[Mapping[str, str]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    timeout: float = 10.0,
) -> ClipboardBackend:
    """
    Pick the clipboard mechanism for the current platform.

    Args:
        platform: ``sys.platform`` style identifier.
        environ:  Environment to inspect for a Wayland session.
        which:    Executable lookup, ``shutil.which`` by default.
        timeout:  Seconds allowed for each clipboard subprocess.

    Returns:
        ClipboardBackend: AppleScript on macOS, Pillow on Windows, wl-paste or
        xclip on Linux when installed, Pillow otherwise.
    """
    environ = os.environ if environ is None else environ

    if platform == "darwin":
        return AppleScriptBackend(timeout=timeout)
    if platform.startswith("win"):
        return PillowBackend()
    if environ.get("WAYLAND_DISPLAY") and which("wl-paste"):
        return WaylandBackend(timeout=timeout)
    if which("xclip"):
        return X11Backend(timeout=timeout)
    return PillowBackend()


class ClipboardCapture:
    """
    Extract the current clipboard image into a temp file.

    Args:
        artifacts: Temp artifact manager owning the output directory.
        backend:   Platform mechanism; auto-selected when omitted.
    """

    def __init__(self, artifacts: TempArtifactManager, backend: Optional[ClipboardBackend] = None):
        self._artifacts = artifacts
        self._backend = backend or select_clipboard_backend()

    @property
    def backend(self) -> ClipboardBackend:
        return self._backend

    def capture(self) -> Optional[AcquiredImage]:
        """
        Capture the clipboard image.

        Returns:
            AcquiredImage with provenance ``clipboard`` and ``is_temporary``
            set, or None when the clipboard holds no image or the platform
            mechanism failed.
        """
        output_path = self._artifacts.new_path("clipboard", "png")

        try:
            captured = self._backend.try_capture(output_path)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("Clipboard backend %s failed: %s", self._backend.name, exc)
            captured = False

        if captured and output_path.exists() and output_path.stat().st_size > 0:
            logger.info("Captured clipboard image via %s: %s", self._backend.name, output_path)
            return AcquiredImage(
                path=output_path,
                provenance=Provenance.CLIPBOARD,
                is_temporary=True,
            )

        if output_path.exists():
            self._artifacts.release(output_path)
        logger.info("No image on the clipboard (backend=%s)", self._backend.name)
        return None
