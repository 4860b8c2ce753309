"""
Utility to load and format prompt templates from markdown files

This keeps prompts clean and separated from code logic.
"""

from pathlib import Path
from typing import Any


class PromptLoader:
    """Load and format prompt templates"""

    def __init__(self, prompts_dir: str = "prompts"):
        """
        Initialize prompt loader

        Args:
            prompts_dir: Root directory containing prompt templates
        """
        # Get absolute path to prompts directory
        self.prompts_dir = Path(__file__).parent.parent / prompts_dir

    def load(
        self,
        template_name: str,
        mode: str = "intake",
        **kwargs: Any
    ) -> str:
        """
        Load and format a prompt template

        Args:
            template_name: Name of template file (without .md extension)
            mode: Sub-directory of the prompts root (e.g. "intake")
            **kwargs: Variables to substitute in template

        Returns:
            Formatted prompt string

        Examples:
            loader = PromptLoader()

            prompt = loader.load(
                "job_description",
                client_id="acme",
                intake_context="**Role Requirements:**\\n- Why hire?: growth",
                additional_instructions="",
            )
        """
        # Build path to template file
        template_path = self.prompts_dir / mode / f"{template_name}.md"

        if not template_path.exists():
            raise FileNotFoundError(
                f"Prompt template not found: {template_path}\n"
                f"Available modes: {', '.join(sorted(p.name for p in self.prompts_dir.iterdir() if p.is_dir()))}"
            )

        # Read template
        with open(template_path, "r", encoding="utf-8") as f:
            template = f.read()

        # Format template with provided variables
        try:
            formatted = template.format(**kwargs)
            return formatted
        except KeyError as e:
            raise ValueError(
                f"Missing required variable '{e.args[0]}' for template '{template_name}' in mode '{mode}'"
            )

    def load_intake(self, template_name: str, **kwargs) -> str:
        """Convenience method for intake meeting templates"""
        return self.load(template_name, mode="intake", **kwargs)
