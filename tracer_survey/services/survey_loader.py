"""Survey definition loader with caching and validation.

This module loads survey definitions from YAML files, validates them against
Pydantic schemas, and caches the results. Definitions are imported into the
database by the graph repository; respondents never read YAML directly.
"""

from pathlib import Path
from functools import lru_cache
from typing import Optional
import yaml
from pydantic import ValidationError

from tracer_survey.config import get_settings
from tracer_survey.schemas.survey import SurveyDefinition
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class DefinitionNotFoundError(Exception):
    """Raised when a survey definition file is not found."""
    pass


class DefinitionValidationError(Exception):
    """Raised when a survey definition fails validation."""
    pass


class SurveyDefinitionLoader:
    """Service for loading and caching survey definitions.

    Definitions are loaded from YAML files in the surveys directory and
    validated against Pydantic schemas. Results are cached.
    """

    def __init__(self, surveys_dir: Optional[str] = None):
        """Initialize definition loader.

        Args:
            surveys_dir: Path to surveys directory (defaults to SURVEYS_DIR)
        """
        if surveys_dir is None:
            surveys_dir = get_settings().surveys_dir

        self.surveys_dir = Path(surveys_dir)

        if not self.surveys_dir.exists():
            logger.warning(f"Surveys directory not found: {self.surveys_dir}")

    @lru_cache(maxsize=128)
    def load_definition(self, definition_id: str) -> SurveyDefinition:
        """Load and validate a survey definition from YAML file.

        Results are cached. Clear cache with clear_cache() if needed.

        Args:
            definition_id: Definition identifier (YAML filename without .yaml)

        Returns:
            Validated SurveyDefinition object

        Raises:
            DefinitionNotFoundError: If definition file doesn't exist
            DefinitionValidationError: If definition fails validation

        Example:
            >>> loader = SurveyDefinitionLoader()
            >>> definition = loader.load_definition("tracer_study_alumni")
            >>> print(definition.metadata.target_role)
            RespondentRole.ALUMNI
        """
        if Path(definition_id).name != definition_id:
            raise DefinitionNotFoundError(f"Invalid definition id '{definition_id}'")

        yaml_path = self.surveys_dir / f"{definition_id}.yaml"

        if not yaml_path.exists():
            logger.error(f"Survey definition file not found: {yaml_path}")
            raise DefinitionNotFoundError(f"Definition '{definition_id}' not found at {yaml_path}")

        try:
            with open(yaml_path, 'r') as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error for {definition_id}: {e}")
            raise DefinitionValidationError(f"Invalid YAML in definition '{definition_id}': {e}")
        except OSError as e:
            logger.error(f"Error reading definition file {yaml_path}: {e}")
            raise DefinitionValidationError(f"Error reading definition '{definition_id}': {e}")

        if not isinstance(raw_data, dict):
            raise DefinitionValidationError(f"Definition '{definition_id}' must be a mapping")

        try:
            definition = SurveyDefinition(**raw_data)
            logger.info(
                f"Successfully loaded definition: {definition_id} "
                f"({len(definition.builder.questions)} questions)"
            )
            return definition
        except ValidationError as e:
            logger.error(f"Validation error for definition {definition_id}: {e}")
            raise DefinitionValidationError(f"Validation failed for definition '{definition_id}': {e}")

    def list_definitions(self) -> list[str]:
        """List all available definition IDs.

        Returns:
            List of definition IDs (filenames without .yaml extension)
        """
        if not self.surveys_dir.exists():
            return []

        definition_ids = [f.stem for f in self.surveys_dir.glob("*.yaml")]

        logger.debug(f"Found {len(definition_ids)} definitions: {definition_ids}")
        return sorted(definition_ids)

    def clear_cache(self):
        """Clear the definition cache.

        Useful during development or when definitions are updated at runtime.
        """
        self.load_definition.cache_clear()
        logger.info("Definition cache cleared")


# Global singleton instance
_loader_instance: Optional[SurveyDefinitionLoader] = None


def get_definition_loader() -> SurveyDefinitionLoader:
    """Get global SurveyDefinitionLoader instance.

    Creates singleton instance on first call.

    Returns:
        Global SurveyDefinitionLoader instance
    """
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = SurveyDefinitionLoader()
    return _loader_instance
