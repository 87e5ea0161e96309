"""
File Management Utilities

This module locates and reads the markup/source map pair handed to the
command line tool, and writes the rebased markup out.
"""

import os
import sys
from pathlib import Path
from typing import Optional, Tuple
import logging


MAP_SUFFIX = ".map"


class FileManager:
    """
    Reads rebase inputs and writes rebase outputs.

    A compiled document ``page.html`` is expected to be paired with
    ``page.html.map`` unless a map path is given explicitly.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def map_path_for(self, html_path: str, map_path: Optional[str] = None) -> Path:
        """
        Work out which source map goes with a markup file.

        Args:
            html_path: Path of the compiled markup
            map_path: Explicit source map path, if any

        Returns:
            Path of the source map
        """
        if map_path:
            return Path(map_path)
        return Path(str(html_path) + MAP_SUFFIX)

    def read_inputs(self, html_path: str, map_path: Optional[str] = None) -> Tuple[bytes, bytes]:
        """
        Read a markup file and its source map.

        Args:
            html_path: Path of the compiled markup
            map_path: Explicit source map path, if any

        Returns:
            Tuple of (markup bytes, source map bytes)

        Raises:
            OSError: if either file cannot be read
        """
        html_file = Path(html_path)
        map_file = self.map_path_for(html_path, map_path)

        html = html_file.read_bytes()
        source_map = map_file.read_bytes()

        self.logger.debug(f"Read {len(html)} bytes of markup from {html_file}")
        self.logger.debug(f"Read {len(source_map)} bytes of source map from {map_file}")
        return html, source_map

    def write_output(self, data: bytes, output_path: Optional[str] = None) -> Optional[str]:
        """
        Write rebased markup to a file, or to stdout when no path is given.

        Args:
            data: Rebased markup
            output_path: Destination file, None for stdout

        Returns:
            Path written to, or None for stdout
        """
        if output_path is None:
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
            return None

        directory = os.path.dirname(os.path.abspath(output_path))
        os.makedirs(directory, exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(data)

        self.logger.info(f"Saved rebased markup ({len(data)} bytes): {output_path}")
        return output_path
