"""
Repository pipeline config (.tfpipeline.yml) parser and validator.
"""

import os
import re
import yaml
from typing import List, Dict, Any, Optional

from controller.src.errors import PipelineConfigError

CONFIG_FILENAMES = [
    ".tfpipeline.yml",
    ".tfpipeline.yaml",
]

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+(-[0-9A-Za-z.]+)?$")

def parse_pipeline_config(yaml_content: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Parse pipeline YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")

    # An empty file means "use the defaults"
    if config is None:
        config = {}

    return validate_config(config, defaults)

def load_pipeline_config(repo_path: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read .tfpipeline.yml from repository.
    Falls back to defaults when the repository has no config file.
    """
    for filename in CONFIG_FILENAMES:
        config_path = os.path.join(repo_path, filename)
        if os.path.exists(config_path):
            with open(config_path, "r") as f:
                return parse_pipeline_config(f.read(), defaults)

    return validate_config({}, defaults)

def validate_config(config: Any, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Validate pipeline configuration structure."""
    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")

    working_directory = config.get("working_directory", defaults.get("working_directory", "."))
    validate_working_directory(working_directory)

    terraform_version = config.get("terraform_version", defaults.get("terraform_version"))
    if not isinstance(terraform_version, str) or not VERSION_PATTERN.match(terraform_version):
        raise PipelineConfigError(
            f"'terraform_version' must be a version like 1.6.6, got {terraform_version!r}"
        )

    # An empty region is reported by the authenticate step
    aws_region = config.get("aws_region", defaults.get("aws_region", ""))
    if not isinstance(aws_region, str):
        raise PipelineConfigError("'aws_region' must be a string")

    return {
        "working_directory": working_directory,
        "terraform_version": terraform_version,
        "aws_region": aws_region,
        "backend": validate_backend(config.get("backend", {})),
        "var_files": validate_var_files(config.get("var_files", [])),
    }

def validate_working_directory(path: Any):
    if not isinstance(path, str) or not path:
        raise PipelineConfigError("'working_directory' must be a non-empty string")

    if os.path.isabs(path):
        raise PipelineConfigError("'working_directory' must be relative to the repository root")

    normalized = os.path.normpath(path)
    if normalized == ".." or normalized.startswith(".." + os.sep):
        raise PipelineConfigError("'working_directory' must stay inside the repository")

def validate_backend(backend: Any) -> Dict[str, str]:
    """Backend overrides are passed to init as -backend-config=key=value."""
    if backend is None:
        return {}

    if not isinstance(backend, dict):
        raise PipelineConfigError("'backend' must be a dictionary")

    validated = {}
    for key, value in backend.items():
        if not isinstance(key, str):
            raise PipelineConfigError("'backend' keys must be strings")
        if isinstance(value, bool):
            value = "true" if value else "false"
        if not isinstance(value, (str, int, float)):
            raise PipelineConfigError(f"'backend.{key}' must be a scalar value")
        validated[key] = str(value)

    return validated

def validate_var_files(var_files: Any) -> List[str]:
    if var_files is None:
        return []

    if not isinstance(var_files, list):
        raise PipelineConfigError("'var_files' must be a list")

    for i, var_file in enumerate(var_files):
        if not isinstance(var_file, str):
            raise PipelineConfigError(f"'var_files' entry {i} must be a string")

    return list(var_files)

def resolve_working_dir(repo_path: str, config: Dict[str, Any]) -> str:
    """Absolute working directory for Terraform commands."""
    working_dir = os.path.join(repo_path, os.path.normpath(config["working_directory"]))
    if not os.path.isdir(working_dir):
        raise PipelineConfigError(
            f"Working directory '{config['working_directory']}' does not exist in repository"
        )
    return working_dir
