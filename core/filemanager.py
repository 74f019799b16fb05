"""
Small helpers around JSON files on disk
"""
import json
import logging
import os

from core.exceptions import InvalidJSONException

logger = logging.getLogger("FileManager")


class FileManager:
    """
    Reads and writes files relative to the working directory
    """

    @staticmethod
    def path_exists(path):
        return os.path.exists(path)

    @staticmethod
    def list_directory(path, ends_with=None):
        entries = sorted(os.listdir(path))
        if ends_with:
            entries = [entry for entry in entries if entry.endswith(ends_with)]
        return entries

    @staticmethod
    def load_json_file(path):
        """
        Returns the parsed content or None when the file does not exist
        """
        if not FileManager.path_exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                logger.error("Invalid JSON in %s: %s", path, e)
                raise InvalidJSONException(path) from e

    @staticmethod
    def save_json_file(data, path):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.debug("Saved %s", path)

    @staticmethod
    def remove_file(path):
        if os.path.exists(path):
            os.remove(path)
