"""
Project file boundary: schema validation, loading and saving.
"""

from cpas.data.loader import (
    ProjectFileError, load_project_file, parse_project_data, project_data_to_dict,
    read_project_file, save_project_file
)

__all__ = [
    "ProjectFileError", "load_project_file", "parse_project_data", "project_data_to_dict",
    "read_project_file", "save_project_file",
]
