"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves a directory tree over Gemini: a "gemini capsule".

    gemini://host/             →  <root>/index.gmi  (or a generated listing)
    gemini://host/docs         →  31 gemini://host/docs/
    gemini://host/docs/        →  <root>/docs/index.gmi
    gemini://host/photo.jpg    →  20 image/jpeg + file bytes
    gemini://host/../../etc/x  →  51 Not found

=============================================================================
"""

import logging
from pathlib import Path
from urllib.parse import quote

from ..protocol import GeminiRequest, GeminiResponse, GeminiStatus
from ..protocol.mime_types import GEMTEXT_MIME_TYPE, get_meta


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Handler for serving static files.

    =========================================================================
    FLOW
    =========================================================================

        Request: gemini://localhost/notes/today.gmi

        1. Take the percent-decoded path from the URL
        2. Resolve it under root_dir
        3. Security check: is the resolved path still inside root_dir?
        4. Directory: redirect to add "/", then index.gmi or a listing
        5. File: 20 <mime type> + contents

    =========================================================================
    USAGE
    =========================================================================

        server = GeminiServer(config, StaticFileHandler("/srv/gemini"))

    =========================================================================
    """

    def __init__(
        self,
        root_dir: str,
        index_file: str = "index.gmi",
        enable_directory_listing: bool = True,
    ):
        """
        Args:
            root_dir: Root directory to serve files from.
            index_file: File served for directory requests.
            enable_directory_listing: Generate a gemtext link list for
                                      directories without an index file.

        Raises:
            ValueError: If root_dir is not a directory.
        """
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.enable_directory_listing = enable_directory_listing

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def __call__(self, request: GeminiRequest, response: GeminiResponse) -> None:
        self.handle(request, response)

    def handle(self, request: GeminiRequest, response: GeminiResponse) -> None:
        """
        Answer a request from the filesystem.

        Always finishes ``response`` with exactly one terminal call.
        """
        url_path = request.path
        relative = url_path.lstrip("/")

        # resolve() normalizes ".." and follows symlinks, so the containment
        # check sees where the path really points. Paths with NUL bytes
        # fail to resolve and get the same answer.
        try:
            full_path = (self.root_dir / relative).resolve()
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {url_path!r}")
            response.not_found()
            return

        if full_path.is_dir():
            if not url_path.endswith("/"):
                response.redirect(self._with_trailing_slash(request))
                return

            index_path = full_path / self.index_file
            if index_path.is_file():
                self._serve_file(index_path, response)
            elif self.enable_directory_listing:
                self._directory_listing(full_path, url_path, response)
            else:
                response.not_found()
            return

        if not full_path.is_file():
            response.not_found()
            return

        self._serve_file(full_path, response)

    def _serve_file(self, path: Path, response: GeminiResponse) -> None:
        try:
            content = path.read_bytes()
        except PermissionError:
            logger.warning(f"Permission denied reading {path}")
            response.not_found()
            return
        except OSError as e:
            logger.error(f"Error serving file {path}: {e}")
            response.error(GeminiStatus.TEMPORARY_FAILURE, "Failed to read file")
            return

        response.set_head(GeminiStatus.SUCCESS, get_meta(path)).send(content)

    def _directory_listing(self, path: Path, url_path: str, response: GeminiResponse) -> None:
        """Generate a gemtext page linking every entry in ``path``."""
        lines = [f"# Index of {url_path}", ""]

        if path != self.root_dir:
            lines.append("=> ../ ../")

        for entry in sorted(path.iterdir()):
            if entry.name.startswith("."):
                continue
            name = entry.name + ("/" if entry.is_dir() else "")
            lines.append(f"=> {quote(name)} {name}")

        body = "\n".join(lines) + "\n"
        response.set_head(GeminiStatus.SUCCESS, GEMTEXT_MIME_TYPE).send(body)

    @staticmethod
    def _with_trailing_slash(request: GeminiRequest) -> str:
        parsed = request.parsed
        return parsed._replace(path=parsed.path + "/").geturl()
