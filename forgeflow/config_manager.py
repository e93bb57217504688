"""
╔═════════════════════════════════════════════════════════════════════════════╗
║                  CONFIGURATION MANAGER SCRIPT - ver. 02.00                  ║
║ Purpose: Runtime settings, logging setup and workflow template loading      ║
║ File:    config_manager.py                                                  ║
╠═════════════════════════════════════════════════════════════════════════════╣
║ Section 1: Initial Settings and Imports                                     ║
║ Purpose:   Configure initial settings, imports, and script variables        ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
import os
import sys
import json
import yaml
import threading
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from forgeflow.config import LOG_CONFIG, RETRY_BASE_DELAY, STREAM_MAX_TOKENS, STREAM_TEMPERATURE
from forgeflow.telemetry import configure_telemetry

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_WORKFLOWS_PATH = os.path.join(PACKAGE_DIR, "workflows.yaml")

# Environment variables override file settings, e.g. FORGEFLOW_LOG_LEVEL=DEBUG
ENV_PREFIX = "FORGEFLOW_"

_config_lock = threading.Lock()
#
"""
╔═════════════════════════════════════════════════════════════════════════════╗
║ Section 2: Pydantic Configuration Models                                    ║
║ Purpose:   Define the data structure and validation for engine settings     ║
╠═════════════════════════════════════════════════════════════════════════════╣
║ Class 2.1: EngineSettings                                                   ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
class EngineSettings(BaseModel):
     log_level: str = "INFO"
     log_file: Optional[str] = None
     retry_base_delay: float = Field(default=RETRY_BASE_DELAY, ge=0)
     # Engine-wide overrides of the per-workflow options when set
     max_iterations: Optional[int] = Field(default=None, ge=1)
     auto_approve: Optional[bool] = None
     telemetry_enabled: bool = True
     telemetry_csv: Optional[str] = None
     stream_temperature: float = STREAM_TEMPERATURE
     stream_max_tokens: int = Field(default=STREAM_MAX_TOKENS, gt=0)
     workflows_path: str = DEFAULT_WORKFLOWS_PATH
# End class
#
"""
╔═════════════════════════════════════════════════════════════════════════════╗
║ Class 2.2: ConfigManager                                                    ║
║ Purpose:   Manages loading and validation of settings and workflow files    ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
class ConfigManager:
     """
     Loads engine settings from an optional JSON file and FORGEFLOW_*
     environment variables (a .env file is honoured), plus workflow
     templates from YAML. Thread-safe; uses Pydantic for validation.
     """
     def __init__(self, config_path: Optional[str] = None, load_env: bool = True):
          self.config_path = config_path
          self.load_env = load_env
          self._settings: Optional[EngineSettings] = None
          self._workflows: Dict[str, Any] = {}
          self.reload()
     # End function

     # =========================================================================
     # Function 2.2.1: reload
     # =========================================================================
     def reload(self):
        """Reloads and re-validates settings and workflow templates."""
        with _config_lock:
            data: Dict[str, Any] = {}
            if self.config_path:
                try:
                    with open(self.config_path, 'r', encoding='utf-8') as f:
                        data = json.load(f)
                except FileNotFoundError:
                    raise RuntimeError(f"FATAL: Settings file not found at {self.config_path}")
                except json.JSONDecodeError as e:
                    raise RuntimeError(f"Failed to parse settings file {self.config_path}: {e}")

            if self.load_env:
                load_dotenv()
                data.update(_env_overrides())

            try:
                self._settings = EngineSettings(**data)
            except ValidationError as e:
                raise RuntimeError(f"Configuration validation error: {e}")

            self._workflows = read_workflow_file(self._settings.workflows_path)
     # End function

     # =========================================================================
     # Function 2.2.2: get
     # =========================================================================
     def get(self) -> EngineSettings:
          """Returns the current, validated settings object."""
          with _config_lock:
               if self._settings is None:
                    raise RuntimeError("Configuration could not be loaded, and settings are unavailable.")
               return self._settings
     # End function

     # =========================================================================
     # Function 2.2.3: get_workflow_templates
     # =========================================================================
     def get_workflow_templates(self) -> Dict[str, Any]:
          """Returns raw workflow definitions keyed by workflow id."""
          with _config_lock:
               return dict(self._workflows)

     def get_workflow_template(self, workflow_id: str) -> Optional[Dict[str, Any]]:
          with _config_lock:
               return self._workflows.get(workflow_id)
     # End function
#
"""
╔═════════════════════════════════════════════════════════════════════════════╗
║ Section 3: Helper Functions                                                 ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
def _env_overrides() -> Dict[str, str]:
     overrides = {}
     for field_name in EngineSettings.model_fields:
          value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
          if value is not None:
               overrides[field_name] = value
     return overrides

# =========================================================================
# Function 3.1: read_workflow_file
# =========================================================================
def read_workflow_file(path: str) -> Dict[str, Any]:
     """Reads a YAML mapping of workflow id to raw workflow definition."""
     try:
          with open(path, "r", encoding="utf-8") as f:
               workflows = yaml.safe_load(f)
     except FileNotFoundError:
          logger.warning(f"[ConfigManager] Workflow file not found at {path}. Predefined workflows unavailable.")
          return {}
     except yaml.YAMLError as e:
          raise RuntimeError(f"Failed to parse workflow configuration from {path}: {e}")

     if workflows is None:
          return {}
     if not isinstance(workflows, dict):
          raise RuntimeError(f"Workflow file {path} must contain a mapping of workflow id to definition")
     return workflows

# =========================================================================
# Function 3.2: configure_logging
# =========================================================================
def configure_logging(settings: EngineSettings) -> None:
     """Install loguru sinks and telemetry according to the settings."""
     log_format = LOG_CONFIG["formatters"]["default"]["format"]
     logger.remove()
     logger.add(sys.stderr, level=settings.log_level.upper(), format=log_format)
     if settings.log_file:
          file_handler = LOG_CONFIG["handlers"]["file"]
          logger.add(
               settings.log_file,
               level=file_handler["level"],
               rotation=file_handler["rotation"],
               retention=file_handler["retention"],
               format=log_format,
          )
     configure_telemetry(enabled=settings.telemetry_enabled, csv_path=settings.telemetry_csv)
     logger.debug(f"[ConfigManager] Logging configured at level {settings.log_level.upper()}")
# End function
#
#
## END config_manager.py
